# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import boto3
from aws_cdk import Stack, Token, aws_iam as iam
from botocore.exceptions import ClientError
from constructs import Construct

from util.config_util import IdentityProviderMode

logger = logging.getLogger(__name__)

GITHUB_ISSUER_HOST = 'token.actions.githubusercontent.com'
GITHUB_ISSUER_URL = f'https://{GITHUB_ISSUER_HOST}'
GITHUB_AUDIENCE = 'sts.amazonaws.com'
GITHUB_THUMBPRINTS = ['6938fd4d98bab03faadb97b34396831e3780aea1']

# Resource type of iam.OpenIdConnectProvider; its physical id is the provider ARN
PROVIDER_RESOURCE_TYPE = 'Custom::AWSCDKOpenIdConnectProvider'


class ProviderOutcome(str, Enum):
    CREATED = 'created'
    REUSED = 'reused'


@dataclass(frozen=True)
class EnsuredProvider:
    provider: iam.IOpenIdConnectProvider
    outcome: ProviderOutcome

    @property
    def arn(self) -> str:
        return self.provider.open_id_connect_provider_arn


def github_provider_arn(account: str, partition: str = 'aws') -> str:
    # IAM names OIDC providers after the issuer host, so the ARN is known up front
    return f'arn:{partition}:iam::{account}:oidc-provider/{GITHUB_ISSUER_HOST}'


def _error_code(e: ClientError) -> str:
    return e.response.get('Error', {}).get('Code', '')


def provider_exists(arn: str, client=None) -> bool:
    """
    Check the account for an OIDC provider.

    Only NoSuchEntity is read as "absent". Throttling, access denied and every
    other failure propagate, so a transient error never turns into a duplicate
    provider that the deployment would then reject.
    """
    client = client or boto3.client('iam')
    try:
        client.get_open_id_connect_provider(OpenIDConnectProviderArn=arn)
    except ClientError as e:
        if _error_code(e) == 'NoSuchEntity':
            return False
        raise
    return True


def stack_owns_provider(stack_name: str, arn: str, client=None) -> bool:
    """Whether the deployed stack `stack_name` is the one managing the provider at `arn`."""
    client = client or boto3.client('cloudformation')
    try:
        response = client.describe_stack_resources(StackName=stack_name)
    except ClientError as e:
        if _error_code(e) == 'ValidationError' and 'does not exist' in str(e):
            return False
        raise
    return any(
        resource['ResourceType'] == PROVIDER_RESOURCE_TYPE and resource.get('PhysicalResourceId') == arn
        for resource in response['StackResources']
    )


def resolve_provider(arn: str, stack_name: str, iam_client=None, cfn_client=None) -> ProviderOutcome:
    """
    Decide whether the stack declares the provider or references an existing one.

    A provider this stack created earlier stays declared; dropping it from the
    template would make CloudFormation delete it.
    """
    if not provider_exists(arn, client=iam_client):
        return ProviderOutcome.CREATED
    if stack_owns_provider(stack_name, arn, client=cfn_client):
        logger.info("GitHub OIDC provider %s is managed by stack %s, keeping it declared", arn, stack_name)
        return ProviderOutcome.CREATED
    return ProviderOutcome.REUSED


def ensure_github_provider(
    scope: Construct,
    id: str,
    mode: IdentityProviderMode,
    account: Optional[str],
    lookup: Callable[[str, str], ProviderOutcome] = resolve_provider,
) -> EnsuredProvider:
    if mode == IdentityProviderMode.REUSE_OR_CREATE:
        if account is None or Token.is_unresolved(account):
            raise ValueError(
                "identityProvider=reuse-or-create needs a concrete account; "
                "set CDK_DEFAULT_ACCOUNT or use identityProvider=create")

        arn = github_provider_arn(account)
        if lookup(arn, Stack.of(scope).stack_name) == ProviderOutcome.REUSED:
            logger.info("Reusing existing GitHub OIDC provider %s", arn)
            provider = iam.OpenIdConnectProvider.from_open_id_connect_provider_arn(scope, id, arn)
            return EnsuredProvider(provider, ProviderOutcome.REUSED)
        logger.info("Declaring GitHub OIDC provider %s in this stack", arn)

    provider = iam.OpenIdConnectProvider(
        scope,
        id,
        url=GITHUB_ISSUER_URL,
        client_ids=[GITHUB_AUDIENCE],
        thumbprints=GITHUB_THUMBPRINTS,
    )
    return EnsuredProvider(provider, ProviderOutcome.CREATED)
