import pytest

from pkgsmith.domain.naming import (
    validate_include_pattern,
    validate_namespace,
    validate_package_name,
    validate_version,
)


@pytest.mark.parametrize("name", ["demo", "left-pad", "http_client2"])
def test_package_name_valid(name):
    assert validate_package_name(name) == []


@pytest.mark.parametrize("name", ["Demo", "1demo", "demo-", "a--b", ""])
def test_package_name_invalid(name):
    diags = validate_package_name(name)
    assert diags[0].code == "PACKAGE_NAME_INVALID"


def test_namespace_allows_dotted_segments():
    assert validate_namespace("acme.tools.http") == []
    assert validate_namespace("acme..tools")[0].code == "NAMESPACE_INVALID"
    assert validate_namespace(".acme")[0].code == "NAMESPACE_INVALID"


@pytest.mark.parametrize("value", ["1.0.0", "0.1.0-alpha.1", "2.3.4+build.5"])
def test_version_semver_valid(value):
    assert validate_version(value) == []


@pytest.mark.parametrize("value", ["1.0", "v1.0.0", "01.0.0"])
def test_version_semver_invalid(value):
    diag = validate_version(value)[0]
    assert diag.code == "VERSION_INVALID"
    assert diag.location.value == value


@pytest.mark.parametrize("pattern", ["**/*", "src/*.py", "README.md", "docs/**/*.md"])
def test_include_pattern_valid(pattern):
    assert validate_include_pattern(pattern) == []


@pytest.mark.parametrize("pattern", ["../*.txt", "src/../../*", "/etc/*", "C:/secrets/*", "..\\*", ""])
def test_include_pattern_outside_package_root(pattern):
    diag = validate_include_pattern(pattern)[0]
    assert diag.code == "INCLUDE_PATTERN_INVALID"
    assert diag.location.field == "build.include"
