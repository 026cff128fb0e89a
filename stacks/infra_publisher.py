# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

from constructs import Construct
from aws_cdk import (
    Duration,
    Stack,
    aws_cloudfront as cloudfront,
    aws_iam as iam,
    aws_s3 as s3,
)

from util.oidc_util import GITHUB_AUDIENCE, GITHUB_ISSUER_HOST, EnsuredProvider


class GitHubPublisher(Construct):
    """
    Role assumed by GitHub Actions to upload the rendered blog and invalidate the cache.

    Only workflows of `github_repo` can assume it, and the attached policy covers
    the one bucket and the one distribution.
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        provider: EnsuredProvider,
        github_repo: str,
        bucket: s3.IBucket,
        distribution: cloudfront.IDistribution,
    ) -> None:
        super().__init__(scope, id)

        account_id = Stack.of(self).account

        self.policy = iam.ManagedPolicy(
            self,
            "GitHubS3Policy",
            managed_policy_name="GitHubS3Policy",
            description="Allow read-write access to the blog S3 bucket, and to invalidate CloudFront cache",
            document=iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        sid="GitHubActionsS3",
                        effect=iam.Effect.ALLOW,
                        actions=["s3:PutObject", "s3:GetObject", "s3:ListBucket"],
                        resources=[bucket.bucket_arn, bucket.arn_for_objects("*")],
                    ),
                    iam.PolicyStatement(
                        sid="GitHubActionsCFD",
                        effect=iam.Effect.ALLOW,
                        actions=["cloudfront:CreateInvalidation"],
                        resources=[
                            f"arn:aws:cloudfront::{account_id}:distribution/{distribution.distribution_id}"
                        ],
                    ),
                ]
            ),
        )

        # Both the audience and the repository-scoped subject must match,
        # any other repository trusted by the same provider is rejected
        self.role = iam.Role(
            self,
            "GitHubS3Role",
            role_name="GitHubS3Role",
            description="Role used by GitHub Actions to push new content to blog S3 Bucket",
            max_session_duration=Duration.hours(2),
            managed_policies=[self.policy],
            assumed_by=iam.WebIdentityPrincipal(
                provider.arn,
                conditions={
                    "StringEquals": {
                        f"{GITHUB_ISSUER_HOST}:aud": GITHUB_AUDIENCE,
                    },
                    "StringLike": {
                        f"{GITHUB_ISSUER_HOST}:sub": subject_pattern(github_repo),
                    },
                },
            ),
        )


def subject_pattern(github_repo: str) -> str:
    return f"repo:{github_repo}:*"
