"""Configuration models."""

from pathlib import Path
from typing import Any, Self

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from pr_pilot.autofix.models import AutoFixConfig
from pr_pilot.checks.models import DEFAULT_RETRY_PATTERNS, PollStrategy, PollStrategyType, WaitOptions
from pr_pilot.config.exceptions import InvalidConfigurationError, MissingConfigurationError

# Most preferred first
ENV_FILES = [".env.prpilot", ".env"]
YAML_CONFIG_FILE = ".pr-pilot.yml"
SECTIONS = ("auto_fix", "ci")


class AutoFixSettings(BaseModel):
    """The ``auto_fix`` configuration section."""

    enabled: bool = Field(default=True, description="Attempt fixes for fixable CI failures")
    max_attempts: int = Field(default=2, ge=1, le=5, description="Max fix attempts per error type")
    max_changed_lines: int = Field(default=1000, ge=1, le=10000, description="Largest acceptable fix")
    require_tests: bool = Field(default=True, description="Run verification after a fix")
    enable_dry_run: bool = Field(default=False, description="Simulate fixes by default")
    create_pr: bool = Field(default=True, description="Open a pull request for each fix")
    auto_merge: bool = Field(default=False, description="Auto-merge fix PRs once green")
    package_manager: str | None = Field(default=None, description="npm, pnpm, yarn, bun, pip, poetry, pipenv, uv")
    commands: dict[str, str] = Field(default_factory=dict, description="Fix command overrides per task")
    verify_command: str | None = Field(default=None, description="Verification command override")
    fix_timeout: int = Field(default=300, gt=0, description="Fix command timeout in seconds")
    verify_timeout: int = Field(default=120, gt=0, description="Verification timeout in seconds")

    def to_engine_config(self) -> AutoFixConfig:
        """Build the engine configuration from this section.

        Returns:
            AutoFixConfig for AutoFixEngine
        """
        return AutoFixConfig(
            max_attempts=self.max_attempts,
            max_changed_lines=self.max_changed_lines,
            require_tests=self.require_tests,
            enable_dry_run=self.enable_dry_run,
            create_pr=self.create_pr,
            fix_timeout=self.fix_timeout,
            verify_timeout=self.verify_timeout,
        )


class CISettings(BaseModel):
    """The ``ci`` configuration section."""

    wait_for_checks: bool = Field(default=True, description="Poll until checks finish")
    fail_fast: bool = Field(default=True, description="Stop on test, build or security failures")
    retry_flaky: bool = Field(default=False, description="Keep waiting on flaky-looking failures")
    max_retries: int = Field(default=3, ge=0)
    timeout: int = Field(default=30, gt=0, description="Wait timeout in minutes")
    initial_interval: int = Field(default=5000, gt=0, description="First poll interval in ms")
    max_interval: int = Field(default=30000, gt=0, description="Poll interval ceiling in ms")
    multiplier: float = Field(default=1.5, gt=0)

    @property
    def timeout_ms(self) -> int:
        """Wait timeout in milliseconds."""
        return self.timeout * 60 * 1000

    def to_wait_options(self, **overrides: Any) -> WaitOptions:
        """Build poller options from this section.

        Args:
            **overrides: WaitOptions fields to override (e.g. on_progress)

        Returns:
            WaitOptions for PollScheduler
        """
        options: dict[str, Any] = {
            "timeout": self.timeout_ms,
            "poll_strategy": PollStrategy(
                type=PollStrategyType.EXPONENTIAL,
                initial_interval=self.initial_interval,
                max_interval=self.max_interval,
                multiplier=self.multiplier,
            ),
            "fail_fast": self.fail_fast,
            "retry_patterns": list(DEFAULT_RETRY_PATTERNS) if self.retry_flaky else [],
            "max_retries": self.max_retries,
        }
        options.update(overrides)
        return WaitOptions(**options)


class SectionAwareEnvSource(EnvSettingsSource):
    """Environment source that ignores scalar values for config sections.

    Most CI providers export ``CI=true``, which would otherwise replace the
    whole ``ci`` section. ``CI__TIMEOUT`` style variables still apply.
    """

    def prepare_field_value(self, field_name: str, field: FieldInfo, value: Any, value_is_complex: bool) -> Any:
        if field_name in SECTIONS and isinstance(value, str) and not value.lstrip().startswith("{"):
            value = None
        return super().prepare_field_value(field_name, field, value, value_is_complex)


class PrPilotConfig(BaseSettings):
    """Configuration for pr-pilot."""

    # GitHub settings
    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("github_token", "gh_token"),
        description="GitHub token (GITHUB_TOKEN or GH_TOKEN)",
    )
    github_api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    github_owner: str | None = Field(default=None, description="Repository owner (default: from origin remote)")
    github_repo: str | None = Field(default=None, description="Repository name (default: from origin remote)")

    # Workflow sections
    auto_fix: AutoFixSettings = Field(default_factory=AutoFixSettings)
    ci: CISettings = Field(default_factory=CISettings)

    model_config = SettingsConfigDict(
        # Later files take precedence
        env_file=ENV_FILES[::-1],
        env_file_encoding="utf-8",
        env_prefix="",
        env_nested_delimiter="__",
        yaml_file=YAML_CONFIG_FILE,
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(
        self,
        _env_file: str | Path | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize configuration.

        Args:
            _env_file: Optional path to custom env file (use env_file for public API)
            **kwargs: Additional configuration values

        Raises:
            InvalidConfigurationError: If the env file does not exist or a value is invalid
            MissingConfigurationError: If no GitHub token is configured
        """
        env_file = kwargs.pop("env_file", _env_file)

        if env_file is not None:
            env_path = Path(env_file)
            if not env_path.exists():
                raise InvalidConfigurationError(f"Environment file not found: {env_file}")
            # settings_customise_sources picks this up from the init kwargs
            kwargs["_custom_env_file"] = env_path

        try:
            super().__init__(**kwargs)
        except ValidationError as e:
            raise InvalidConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources.

        Priority: init kwargs, environment, env file (custom or default),
        then the optional ``.pr-pilot.yml`` in the working directory.

        Args:
            settings_cls: The settings class being instantiated
            init_settings: Settings from __init__ arguments
            env_settings: Settings from environment variables
            dotenv_settings: Settings from .env files
            file_secret_settings: Settings from secret files

        Returns:
            Tuple of settings sources in priority order
        """
        environment = SectionAwareEnvSource(settings_cls)
        yaml_settings = YamlConfigSettingsSource(settings_cls)

        # init_kwargs exists at runtime but may not be in type stubs
        init_kwargs = init_settings.init_kwargs  # type: ignore[attr-defined]
        custom_env_path = init_kwargs.get("_custom_env_file")

        if custom_env_path is not None:
            custom_dotenv = DotEnvSettingsSource(
                settings_cls,
                env_file=custom_env_path,
                env_file_encoding="utf-8",
            )
            return (init_settings, environment, custom_dotenv, yaml_settings, file_secret_settings)

        return (init_settings, environment, dotenv_settings, yaml_settings, file_secret_settings)

    @field_validator("github_api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URL doesn't have trailing slash.

        Args:
            v: URL value

        Returns:
            Normalized URL without trailing slash
        """
        return v.rstrip("/")

    @model_validator(mode="before")
    @classmethod
    def check_section_types(cls, data: Any) -> Any:
        """Reject config sections that aren't mappings (e.g. ``ci: true`` in YAML).

        Raises:
            InvalidConfigurationError: If a section has the wrong shape
        """
        if isinstance(data, dict):
            for section in SECTIONS:
                value = data.get(section)
                if value is not None and not isinstance(value, dict | BaseModel):
                    raise InvalidConfigurationError(f"'{section}' must be a mapping, got {type(value).__name__}")
        return data

    @model_validator(mode="after")
    def validate_token(self) -> Self:
        """Ensure a GitHub token is configured.

        Returns:
            Self

        Raises:
            MissingConfigurationError: If no token is provided
        """
        if not self.github_token:
            raise MissingConfigurationError("Must provide GITHUB_TOKEN or GH_TOKEN")
        return self

    def with_repository(self, owner: str, repo: str) -> "PrPilotConfig":
        """Return a copy with owner/repo filled in where not configured.

        Args:
            owner: Repository owner
            repo: Repository name

        Returns:
            Updated configuration
        """
        return self.model_copy(
            update={
                "github_owner": self.github_owner or owner,
                "github_repo": self.github_repo or repo,
            }
        )

    @staticmethod
    def find_env_file() -> Path | None:
        """Find the environment file being used.

        Checks for .env.prpilot and .env in current directory in that order.

        Returns:
            Path to the env file if found, None otherwise
        """
        for env_file in ENV_FILES:
            path = Path(env_file)
            if path.exists():
                return path.absolute()
        return None
