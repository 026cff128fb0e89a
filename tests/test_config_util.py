"""Tests for blog configuration parsing"""

import logging

import aws_cdk as cdk
import pytest

from util.config_util import (
    BlogConfig,
    IdentityProviderMode,
    OriginAccess,
    validate_blog_url,
    validate_github_repo,
)

CONTEXT = {"blogUrl": "blog.example.com", "githubRepo": "octo/blog"}


def _node(**context):
    return cdk.App(context={**CONTEXT, **context}).node


class TestValidateBlogUrl:
    @pytest.mark.parametrize("url", ["blog.example.com", "example.io", "my-site.dev", "a.b.c.example.org"])
    def test_accepts_domains(self, url):
        assert validate_blog_url(url) == url

    @pytest.mark.parametrize(
        "url",
        ["", "localhost", "Blog.Example.com", "-blog.example.com", "blog-.example.com",
         "blog..example.com", "blog_site.example.com", "a" * 60 + ".com"],
    )
    def test_rejects_non_domains(self, url):
        with pytest.raises(ValueError):
            validate_blog_url(url)

    @pytest.mark.parametrize(
        "url",
        ["192.168.1.1", "xn--bcher-kva.example", "sthree-blog.example.com",
         "blog.example-s3alias", "blog.example--ol-s3", "blog.example.mrap"],
    )
    def test_rejects_reserved_bucket_names(self, url):
        with pytest.raises(ValueError):
            validate_blog_url(url)

    def test_accepts_punycode_below_the_first_label(self):
        assert validate_blog_url("blog.xn--p1ai") == "blog.xn--p1ai"


class TestValidateGithubRepo:
    def test_accepts_owner_repo(self):
        assert validate_github_repo("octo-org/tech.blog_v2") == "octo-org/tech.blog_v2"

    @pytest.mark.parametrize("repo", ["", "octo", "octo/", "/blog", "octo/blog/extra", "octo/*"])
    def test_rejects_malformed(self, repo):
        with pytest.raises(ValueError):
            validate_github_repo(repo)


class TestFromContext:
    def test_defaults(self):
        config = BlogConfig.from_context(_node(), environ={})
        assert config.blog_url == "blog.example.com"
        assert config.github_repo == "octo/blog"
        assert config.origin_access is OriginAccess.SIGNED
        assert config.identity_provider is IdentityProviderMode.REUSE_OR_CREATE
        assert config.stack_name == "BlogStack"
        assert config.account is None
        assert config.region == "us-east-1"

    def test_context_values(self):
        node = _node(originAccess="public", identityProvider="create", stackName="TechBlog")
        config = BlogConfig.from_context(node, environ={})
        assert config.origin_access is OriginAccess.PUBLIC
        assert config.identity_provider is IdentityProviderMode.CREATE
        assert config.stack_name == "TechBlog"

    def test_environment_overrides_context(self):
        environ = {
            "BLOG_URL": "Notes.Example.org",
            "GITHUB_REPO": "someone/notes",
            "ORIGIN_ACCESS": "public",
            "CDK_DEFAULT_ACCOUNT": "123456789012",
        }
        config = BlogConfig.from_context(_node(), environ=environ)
        assert config.blog_url == "notes.example.org"
        assert config.github_repo == "someone/notes"
        assert config.origin_access is OriginAccess.PUBLIC
        assert config.account == "123456789012"

    def test_missing_blog_url(self):
        node = cdk.App(context={"githubRepo": "octo/blog"}).node
        with pytest.raises(ValueError, match="blogUrl"):
            BlogConfig.from_context(node, environ={})

    def test_unknown_origin_access(self):
        with pytest.raises(ValueError, match="originAccess"):
            BlogConfig.from_context(_node(originAccess="oai"), environ={})

    def test_unknown_identity_provider_mode(self):
        with pytest.raises(ValueError, match="identityProvider"):
            BlogConfig.from_context(_node(identityProvider="reuse"), environ={})

    def test_other_deploy_region_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="util.config_util"):
            config = BlogConfig.from_context(_node(), environ={"CDK_DEPLOY_REGION": "eu-west-1"})
        assert config.region == "us-east-1"
        assert "eu-west-1" in caplog.text
