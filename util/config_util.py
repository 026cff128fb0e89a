# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Blog stack configuration.

Values come from CDK context (cdk.json or `cdk synth -c key=value`) and may be
overridden by environment variables, which is how CI pipelines usually pass them.
"""

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from constructs import Node

logger = logging.getLogger(__name__)

# CloudFront only accepts ACM certificates from us-east-1
DEPLOY_REGION = 'us-east-1'

_DOMAIN_LABEL = re.compile(r'^[a-z0-9]([a-z0-9-]*[a-z0-9])?$')
_GITHUB_REPO = re.compile(r'^[A-Za-z0-9-]+/[A-Za-z0-9._-]+$')
_IP_ADDRESS = re.compile(r'^\d+\.\d+\.\d+\.\d+$')

# Reserved by S3 for access points, directory buckets and the like
_RESERVED_BUCKET_PREFIXES = ('xn--', 'sthree-', 'amzn-s3-demo-')
_RESERVED_BUCKET_SUFFIXES = ('-s3alias', '--ol-s3', '.mrap', '--x-s3', '--table-s3')


class OriginAccess(str, Enum):
    PUBLIC = 'public'
    SIGNED = 'signed'


class IdentityProviderMode(str, Enum):
    CREATE = 'create'
    REUSE_OR_CREATE = 'reuse-or-create'


def validate_blog_url(blog_url: str) -> str:
    """The domain doubles as the bucket name, so it has to satisfy both rule sets."""
    if not blog_url:
        raise ValueError("blogUrl is required")
    if not 3 <= len(blog_url) <= 63:
        raise ValueError(f"blogUrl must be 3-63 characters long, got {blog_url!r}")
    if _IP_ADDRESS.match(blog_url):
        raise ValueError(f"blogUrl must not be an IP address, got {blog_url!r}")
    if blog_url.startswith(_RESERVED_BUCKET_PREFIXES) or blog_url.endswith(_RESERVED_BUCKET_SUFFIXES):
        raise ValueError(f"blogUrl is not a valid S3 bucket name, got {blog_url!r}")
    labels = blog_url.split('.')
    if len(labels) < 2:
        raise ValueError(f"blogUrl must be a domain name, got {blog_url!r}")
    for label in labels:
        if not _DOMAIN_LABEL.match(label):
            raise ValueError(f"blogUrl has an invalid label {label!r}: {blog_url!r}")
    return blog_url


def validate_github_repo(github_repo: str) -> str:
    if not github_repo or not _GITHUB_REPO.match(github_repo):
        raise ValueError(f"githubRepo must look like 'owner/repo', got {github_repo!r}")
    return github_repo


def _parse_enum(enum_cls, key: str, raw: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValueError(f"{key} must be one of: {allowed}; got {raw!r}") from None


@dataclass(frozen=True)
class BlogConfig:
    """
    Settings for one blog stack.

    Attributes:
        blog_url: Public domain name; also the bucket name and certificate domain.
        github_repo: `owner/repo` allowed to assume the publishing role.
        origin_access: How CloudFront reads the bucket.
        identity_provider: Whether the GitHub OIDC provider is always declared
            or reused when the account already has one.
        stack_name: CloudFormation stack name.
        account: Target account, None for an environment-agnostic synth.
    """

    blog_url: str
    github_repo: str
    origin_access: OriginAccess = OriginAccess.SIGNED
    identity_provider: IdentityProviderMode = IdentityProviderMode.REUSE_OR_CREATE
    stack_name: str = 'BlogStack'
    account: Optional[str] = None

    def __post_init__(self):
        validate_blog_url(self.blog_url)
        validate_github_repo(self.github_repo)

    @property
    def region(self) -> str:
        return DEPLOY_REGION

    @classmethod
    def from_context(cls, node: Node, environ: Optional[Mapping[str, str]] = None) -> "BlogConfig":
        """Read settings from the app node context, letting environment variables win."""
        environ = os.environ if environ is None else environ

        def setting(key: str, env_key: str, default: str = '') -> str:
            value = environ.get(env_key) or node.try_get_context(key) or default
            return str(value).strip()

        deploy_region = environ.get('CDK_DEPLOY_REGION')
        if deploy_region and deploy_region != DEPLOY_REGION:
            logger.warning(
                "Ignoring CDK_DEPLOY_REGION=%s, the blog stack is always deployed to %s",
                deploy_region, DEPLOY_REGION)

        return cls(
            blog_url=setting('blogUrl', 'BLOG_URL').lower(),
            github_repo=setting('githubRepo', 'GITHUB_REPO'),
            origin_access=_parse_enum(
                OriginAccess, 'originAccess',
                setting('originAccess', 'ORIGIN_ACCESS', OriginAccess.SIGNED.value)),
            identity_provider=_parse_enum(
                IdentityProviderMode, 'identityProvider',
                setting('identityProvider', 'IDENTITY_PROVIDER',
                        IdentityProviderMode.REUSE_OR_CREATE.value)),
            stack_name=setting('stackName', 'BLOG_STACK_NAME', 'BlogStack'),
            account=environ.get('CDK_DEFAULT_ACCOUNT') or None,
        )
