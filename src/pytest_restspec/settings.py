"""Runtime settings of the runner.

Settings are resolved from `RESTSPEC_*` environment variables (and keyword
overrides) and passed explicitly to the runner and the HTTP client; nothing
is read from global state during execution.
"""

from pydantic import Field, SecretStr
from pydantic_settings import SettingsConfigDict

from pytest_restspec.models import SettingsModel

#: Features the interpreter does not implement; tests requiring them skip.
DEFAULT_SKIP_FEATURES = frozenset({
    'allowed_warnings_regex',
    'close_to',
    'default_shards',
    'is_after',
    'node_selector',
    'warnings_regex',
    'yaml',
})


class RunnerSettings(SettingsModel):
    """Settings controlling how test files are executed."""

    model_config = SettingsConfigDict(
        env_prefix='RESTSPEC_',
        frozen=True,
        extra='ignore',
    )

    url: str = Field(
        default='http://localhost:9200',
        title='Service URL',
    )
    username: str | None = Field(
        default=None,
        title='Basic authentication user',
    )
    password: SecretStr | None = Field(
        default=None,
        title='Basic authentication password',
    )
    verify_certs: bool = Field(
        default=True,
        title='Verify TLS certificates',
    )
    request_timeout: float | None = Field(
        default=30.0,
        gt=0,
        title='Request timeout in seconds',
        description='A request exceeding it fails the step as an unexpected request error.',
    )

    skip_features: frozenset[str] = Field(
        default_factory=frozenset,
        title='Skipped features',
        description=(
            'Features treated as unsupported in addition to the defaults. '
            'Tests and files whose `skip` step lists one of them are skipped.'
        ),
    )
    server_version: str | None = Field(
        default=None,
        title='Service version',
        description=(
            'Version used to evaluate `skip.version` ranges. '
            'Fetched from the `info` operation when not set.'
        ),
    )

    reset: bool = Field(
        default=True,
        title='Reset service state',
        description='Reset the service to its baseline before and after each file.',
    )
    reset_security: bool = Field(
        default=False,
        title='Reset security objects',
        description='Also remove users, roles, privileges and jobs when resetting.',
    )

    @property
    def features_to_skip(self) -> frozenset[str]:
        """Configured skip features merged with the defaults."""
        return DEFAULT_SKIP_FEATURES | self.skip_features
