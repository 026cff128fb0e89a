# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

from pathlib import Path
from typing import Callable, Optional

from constructs import Construct
from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_certificatemanager as acm,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_iam as iam,
    aws_s3 as s3,
)

from stacks.infra_publisher import GitHubPublisher
from util.config_util import BlogConfig, OriginAccess
from util.oidc_util import ProviderOutcome, ensure_github_provider, resolve_provider

INDEX_REWRITE_CODE = Path(__file__).resolve().parent.parent / 'functions' / 'index_rewrite.js'

ERROR_PAGE_PATH = '/404.html'
ERROR_PAGE_TTL = Duration.seconds(10)


class Blog(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: BlogConfig,
        provider_lookup: Optional[Callable[[str, str], ProviderOutcome]] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        blog_url = config.blog_url
        signed = config.origin_access == OriginAccess.SIGNED

        # S3 bucket, named after the domain
        # Teardown empties and deletes it, the content is rebuilt from the blog repository
        if signed:
            bucket_access = dict(
                block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
                enforce_ssl=True,
            )
        else:
            bucket_access = dict(
                block_public_access=s3.BlockPublicAccess(
                    block_public_acls=False,
                    block_public_policy=False,
                    ignore_public_acls=False,
                    restrict_public_buckets=False,
                ),
                enforce_ssl=False,
                website_index_document='index.html',
                website_error_document=ERROR_PAGE_PATH.lstrip('/'),
            )

        self.bucket = s3.Bucket(
            self,
            "BlogBucket",
            bucket_name=blog_url,
            encryption=s3.BucketEncryption.S3_MANAGED,
            public_read_access=False,
            versioned=False,
            auto_delete_objects=True,
            removal_policy=RemovalPolicy.DESTROY,
            **bucket_access,
        )

        # The website endpoint can only serve objects anonymous readers may fetch
        if not signed:
            self.bucket.add_to_resource_policy(
                iam.PolicyStatement(
                    sid="PublicGetReadObject",
                    effect=iam.Effect.ALLOW,
                    actions=["s3:GetObject"],
                    resources=[self.bucket.arn_for_objects("*")],
                    principals=[iam.StarPrincipal()],
                )
            )

        # ACM certificate, validated by a DNS record created at the domain's DNS provider
        self.certificate = acm.Certificate(
            self,
            "BlogCertificate",
            domain_name=blog_url,
            key_algorithm=acm.KeyAlgorithm.RSA_2048,
            validation=acm.CertificateValidation.from_dns(),
        )

        # Origin
        # Signed: private REST endpoint behind Origin Access Control; index documents
        #   are resolved by the viewer request CloudFront Function
        # Public: S3 website endpoint, which only speaks HTTP
        origin_id = f"{blog_url}.s3"
        function_associations = []
        if signed:
            # LIST lets S3 answer a missing key with 404 instead of 403
            origin = origins.S3BucketOrigin.with_origin_access_control(
                self.bucket,
                origin_id=origin_id,
                origin_access_levels=[cloudfront.AccessLevel.READ, cloudfront.AccessLevel.LIST],
            )

            self.index_rewrite_fn = cloudfront.Function(
                self,
                "IndexRewriteFunction",
                comment="Rewrite directory URIs to their index.html object",
                runtime=cloudfront.FunctionRuntime.JS_2_0,
                auto_publish=True,
                code=cloudfront.FunctionCode.from_file(file_path=str(INDEX_REWRITE_CODE)),
            )
            function_associations.append(
                cloudfront.FunctionAssociation(
                    event_type=cloudfront.FunctionEventType.VIEWER_REQUEST,
                    function=self.index_rewrite_fn,
                )
            )
        else:
            origin = origins.S3StaticWebsiteOrigin(
                self.bucket,
                origin_id=origin_id,
                protocol_policy=cloudfront.OriginProtocolPolicy.HTTP_ONLY,
                http_port=80,
                origin_shield_enabled=False,
            )

        # CloudFront distribution
        # GET/HEAD only, HTTPS for viewers, TLSv1.2_2021 with SNI, cheapest price class
        self.distribution = cloudfront.Distribution(
            self,
            "BlogDistribution",
            comment=f"Blog distribution for {blog_url}",
            default_root_object='index.html',
            default_behavior=cloudfront.BehaviorOptions(
                origin=origin,
                compress=True,
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                function_associations=function_associations or None,
            ),
            error_responses=[
                cloudfront.ErrorResponse(
                    http_status=404,
                    response_http_status=404,
                    ttl=ERROR_PAGE_TTL,
                    response_page_path=ERROR_PAGE_PATH,
                )
            ],
            domain_names=[blog_url],
            certificate=self.certificate,
            enable_logging=False,
            log_includes_cookies=False,
            price_class=cloudfront.PriceClass.PRICE_CLASS_100,
            http_version=cloudfront.HttpVersion.HTTP2_AND_3,
            minimum_protocol_version=cloudfront.SecurityPolicyProtocol.TLS_V1_2_2021,
            ssl_support_method=cloudfront.SSLMethod.SNI,
        )

        # GitHub Actions OIDC provider, role and least-privilege policy
        self.provider = ensure_github_provider(
            self,
            "GitHubOidcProvider",
            mode=config.identity_provider,
            account=config.account,
            lookup=provider_lookup or resolve_provider,
        )
        self.publisher = GitHubPublisher(
            self,
            "GitHubPublisher",
            provider=self.provider,
            github_repo=config.github_repo,
            bucket=self.bucket,
            distribution=self.distribution,
        )

        CfnOutput(self, "BlogBucketOutput", key="BlogBucketName",
                  value=self.bucket.bucket_name, description="S3 Bucket Name")
        CfnOutput(self, "BlogDistributionOutput", key="BlogDistributionId",
                  value=self.distribution.distribution_id, description="CloudFront Distribution Id")
        CfnOutput(self, "BlogDistributionDomainOutput", key="BlogDistributionDomainName",
                  value=self.distribution.distribution_domain_name,
                  description="CloudFront Domain, target of the blog's CNAME record")
        CfnOutput(self, "GitHubS3RoleOutput", key="GitHubS3RoleName",
                  value=self.publisher.role.role_name, description="Role assumed by GitHub Actions")
