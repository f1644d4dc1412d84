import os

from boto3 import Session
from botocore.config import Config
from pydantic import BaseModel

from tfaws.utils import envvar
from tfaws.utils.sts import AWSApiSts

DEFAULT_ASSUME_ROLE_DURATION_SECONDS = 3600
DEFAULT_ASSUME_ROLE_SESSION_NAME = "tfaws-sweeper"
DEFAULT_MAX_RETRIES = 5


class SweeperConfig(BaseModel, frozen=True):
    region: str
    max_retries: int = DEFAULT_MAX_RETRIES
    assume_role_arn: str | None = None
    assume_role_duration_seconds: int = DEFAULT_ASSUME_ROLE_DURATION_SECONDS
    assume_role_external_id: str | None = None
    assume_role_session_name: str = DEFAULT_ASSUME_ROLE_SESSION_NAME

    @classmethod
    def from_env(cls, region: str) -> "SweeperConfig":
        """Build the configuration for a region from the environment.

        Credentials must come from a profile, static keys or a container
        credentials endpoint. Static keys need both halves set.
        """
        envvar.require_one_of(
            [
                envvar.AWS_PROFILE,
                envvar.AWS_ACCESS_KEY_ID,
                envvar.AWS_CONTAINER_CREDENTIALS_FULL_URI,
            ],
            "credentials for running sweepers",
        )
        if os.environ.get(envvar.AWS_ACCESS_KEY_ID):
            envvar.require(
                envvar.AWS_SECRET_ACCESS_KEY,
                f"static credentials value when using {envvar.AWS_ACCESS_KEY_ID}",
            )

        role_arn = os.environ.get(envvar.TF_AWS_ASSUME_ROLE_ARN) or None
        if not role_arn:
            return cls(region=region)

        duration = DEFAULT_ASSUME_ROLE_DURATION_SECONDS
        if raw_duration := os.environ.get(envvar.TF_AWS_ASSUME_ROLE_DURATION):
            try:
                duration = int(raw_duration)
            except ValueError as e:
                raise envvar.EnvVarError(
                    f"environment variable {envvar.TF_AWS_ASSUME_ROLE_DURATION}: {e}"
                ) from e

        return cls(
            region=region,
            assume_role_arn=role_arn,
            assume_role_duration_seconds=duration,
            assume_role_external_id=os.environ.get(
                envvar.TF_AWS_ASSUME_ROLE_EXTERNAL_ID
            )
            or None,
            assume_role_session_name=os.environ.get(
                envvar.TF_AWS_ASSUME_ROLE_SESSION_NAME
            )
            or DEFAULT_ASSUME_ROLE_SESSION_NAME,
        )

    @property
    def botocore_config(self) -> Config:
        return Config(
            region_name=self.region,
            retries={"max_attempts": self.max_retries, "mode": "standard"},
        )

    def build_session(self) -> Session:
        session = Session(region_name=self.region)
        if not self.assume_role_arn:
            return session
        sts = AWSApiSts(session.client("sts", config=self.botocore_config))
        credentials = sts.assume_role(
            role_arn=self.assume_role_arn,
            session_name=self.assume_role_session_name,
            duration_seconds=self.assume_role_duration_seconds,
            external_id=self.assume_role_external_id,
        )
        return credentials.build_session(self.region)
