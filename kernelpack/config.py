"""Configuration settings for kernelpack.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels accepted by KPACK_LOG_LEVEL and --log-level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _default_toolchain_path() -> Path:
    """Return the default clang toolchain bin directory."""
    return (
        Path.home()
        / "pixelos"
        / "prebuilts"
        / "clang"
        / "host"
        / "linux-x86"
        / "clang-playground"
        / "bin"
    )


def _default_repack_dir() -> Path:
    """Return the default AnyKernel staging directory."""
    return Path.home() / "anykernel"


def _default_dist_dir() -> Path:
    """Return the default distribution directory for finished zips."""
    return Path.home() / "TREES"


def _default_log_dir() -> Path:
    """Return the default directory for captured tool output."""
    return Path.home() / ".local" / "share" / "kernelpack" / "logs"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the KPACK_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="KPACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Toolchain
    toolchain_path: Path = Field(
        default_factory=_default_toolchain_path,
        description="Directory holding clang and the cross binutils",
    )
    cross_compile: str = Field(
        default="aarch64-linux-gnu-",
        description="Cross-compile prefix for the 64-bit kernel",
    )
    cross_compile_arm32: str = Field(
        default="arm-linux-gnueabi-",
        description="Cross-compile prefix for the 32-bit compat vDSO",
    )
    llvm: bool = Field(default=True, description="Pass LLVM=1 to make")
    llvm_ias: bool = Field(default=True, description="Pass LLVM_IAS=1 to make")

    # Kernel
    arch: str = Field(default="arm64", description="Target architecture")
    subarch: str = Field(default="arm64", description="Target sub-architecture")
    defconfig: str = Field(
        default="cepheus_defconfig",
        description="Default configuration profile used to seed the build",
    )
    build_user: str = Field(default="balgxmr", description="KBUILD_BUILD_USER")
    build_host: str = Field(default="balgxmr", description="KBUILD_BUILD_HOST")
    jobs: int | None = Field(
        default=None,
        ge=1,
        description="Parallel make jobs (defaults to the processor count)",
    )
    output_subdir: str = Field(
        default="out",
        description="make O= directory, relative to the kernel directory",
    )
    boot_image: str = Field(
        default="arch/arm64/boot/Image.gz-dtb",
        description="Boot image path relative to the output directory",
    )

    # Release naming
    version_label: str = Field(
        default="POST-SOVIET-MI9-",
        description="Base version label of the flashable zip",
    )
    version_suffix: str = Field(
        default="",
        description="Free-form suffix appended to the version label",
    )

    # Paths
    kernel_dir: Path = Field(
        default_factory=Path.cwd,
        description="Kernel source tree (defaults to the working directory)",
    )
    repack_dir: Path = Field(
        default_factory=_default_repack_dir,
        description="AnyKernel staging directory",
    )
    dist_dir: Path = Field(
        default_factory=_default_dist_dir,
        description="Directory receiving finished zips",
    )
    log_dir: Path = Field(
        default_factory=_default_log_dir,
        description="Directory for captured build logs",
    )

    # Vendored module import
    import_remote: str = Field(
        default="kernelsu",
        description="Name of the git remote for the vendored tree",
    )
    import_url: str = Field(
        default="https://github.com/tiann/KernelSU.git",
        description="Upstream repository of the vendored tree",
    )
    import_branch: str = Field(
        default="main",
        description="Upstream branch imported into the prefix",
    )
    import_prefix: str = Field(
        default="drivers/staging/kernelsu",
        description="Path prefix of the vendored tree in the kernel repo",
    )

    # Operational
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    build_timeout: int | None = Field(
        default=None,
        ge=60,
        description="Timeout for each external tool invocation (None = no timeout)",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["LogLevel", "Settings", "get_settings", "print_settings_json"]
