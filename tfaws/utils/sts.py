from datetime import datetime
from typing import TYPE_CHECKING, Any

from boto3 import Session
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from mypy_boto3_sts import STSClient
else:
    STSClient = object


class AWSCredentials(BaseModel):
    access_key_id: str = Field(..., alias="AccessKeyId")
    secret_access_key: str = Field(..., alias="SecretAccessKey")
    session_token: str = Field(..., alias="SessionToken")
    expiration: datetime = Field(..., alias="Expiration")

    def build_session(self, region: str) -> Session:
        return Session(
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            aws_session_token=self.session_token,
            region_name=region,
        )


class AWSApiSts:
    def __init__(self, client: STSClient) -> None:
        self.client = client

    def assume_role(
        self,
        role_arn: str,
        session_name: str,
        duration_seconds: int,
        external_id: str | None = None,
    ) -> AWSCredentials:
        """Assume a role and return temporary credentials."""
        kwargs: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": session_name,
            "DurationSeconds": duration_seconds,
        }
        if external_id:
            kwargs["ExternalId"] = external_id
        assumed_role_object = self.client.assume_role(**kwargs)
        return AWSCredentials(**assumed_role_object["Credentials"])

    def get_caller_identity(self) -> str:
        """Return the account id of the current credentials."""
        return self.client.get_caller_identity()["Account"]
