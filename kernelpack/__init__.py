"""kernelpack - build and package Android kernels into flashable zips.

This package drives a cross-compiled kernel build (clean, configure, compile),
collects the boot image into an AnyKernel staging tree and archives it, and
vendors out-of-tree module trees with a subtree-style git import.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
