"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use PAGEDMD_ prefix (e.g., PAGEDMD_CHAPTER_WINDOW_BACK=12).

Settings can also be loaded from a .env file in the project root.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use PAGEDMD_ prefix.

    Examples:
        PAGEDMD_CHAPTER_WINDOW_BACK=10
        PAGEDMD_PLUGIN_STRICT=true
        PAGEDMD_PLUGIN_PACKAGES_DIR=vendor/plugins
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGEDMD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Auto-rule configuration
    chapter_window_back: int = Field(
        default=10,
        ge=0,
        description="Tokens scanned before an H1 for an explicit @page/@break marker",
    )

    chapter_window_forward: int = Field(
        default=2,
        ge=0,
        description="Tokens scanned after an H1 for an explicit @page/@break marker",
    )

    suggestion_max_distance: int = Field(
        default=2,
        ge=0,
        description="Maximum edit distance for 'did you mean' suggestions",
    )

    # Plugin loader configuration
    plugin_strict: bool = Field(
        default=False,
        description="Strict mode: raise on plugin load failures instead of skipping",
    )

    plugin_cache: bool = Field(
        default=True,
        description="Cache loaded plugins by configuration fingerprint",
    )

    plugin_packages_dir: str = Field(
        default="plugin_packages",
        description="Directory (relative to the project) holding packaged plugins",
    )

    builtin_styles_dir: str = Field(
        default="assets/plugins",
        description="Directory (relative to the project) holding built-in plugin stylesheets",
    )

    # Rendering configuration
    pygments_style: str = Field(
        default="monokai",
        description="Pygments style used to highlight fenced code blocks",
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug output while rendering",
    )

    def verbosity_default(self) -> int:
        """
        Verbosity level implied by the settings.

        Returns:
            3 when debug_mode is on, 1 otherwise

        Example:
            >>> AppSettings(debug_mode=True).verbosity_default()
            3
        """
        return 3 if self.debug_mode else 1


# Singleton instance - import this in your code
appsettings = AppSettings()
