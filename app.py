# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import logging

import aws_cdk as cdk

from stacks.infra_blog import Blog
from util.config_util import BlogConfig

logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

app = cdk.App()

# Settings come from cdk.json context, -c overrides, or BLOG_URL / GITHUB_REPO /
# ORIGIN_ACCESS / IDENTITY_PROVIDER environment variables
config = BlogConfig.from_context(app.node)

# The blog stack creates:
#   - S3 bucket named after the blog domain
#   - ACM certificate for the domain (DNS validation)
#   - CloudFront distribution with
#     - signed: Origin Access Control + CloudFront Function viewer request index rewrite
#     - public: S3 website endpoint origin + public-read bucket policy
#   - GitHub OIDC provider (reused if another stack already manages one)
#   - GitHubS3Role + GitHubS3Policy for the blog repository's workflows
Blog(
    app,
    config.stack_name,
    config=config,
    env=cdk.Environment(account=config.account, region=config.region),
)

app.synth()
