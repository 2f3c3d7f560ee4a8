"""Tests for council_ai/tools/xcode.py."""

from council_ai.tools.xcode import USAGE, get_setting, list_settings, project_config, set_setting

PBXPROJ = """// !$*UTF8*$!
{
	objects = {
		AAAAAAAAAAAAAAAAAAAAAAAA /* MyApp */ = {
			isa = PBXNativeTarget;
			name = MyApp;
		};
		BBBBBBBBBBBBBBBBBBBBBBBB /* Debug */ = {
			isa = XCBuildConfiguration;
			buildSettings = {
				PRODUCT_NAME = "$(TARGET_NAME)";
				SWIFT_VERSION = 5.0;
			};
			name = Debug;
		};
		CCCCCCCCCCCCCCCCCCCCCCCC /* Release */ = {
			isa = XCBuildConfiguration;
			buildSettings = {
				PRODUCT_NAME = "$(TARGET_NAME)";
			};
			name = Release;
		};
	};
}
"""


def test_list_settings():
    report = list_settings(PBXPROJ)
    assert "Targets:\n - MyApp (UUID: AAAAAAAAAAAAAAAAAAAAAAAA)" in report
    assert " - Debug (UUID: BBBBBBBBBBBBBBBBBBBBBBBB)" in report
    assert " - Release (UUID: CCCCCCCCCCCCCCCCCCCCCCCC)" in report


def test_get_setting_unquotes():
    assert get_setting(PBXPROJ, "PRODUCT_NAME") == "$(TARGET_NAME)"
    assert get_setting(PBXPROJ, "SWIFT_VERSION") == "5.0"
    assert get_setting(PBXPROJ, "MISSING_KEY") is None


def test_set_setting_updates_and_inserts():
    content, count = set_setting(PBXPROJ, "SWIFT_VERSION", "6.0")
    assert count == 2
    assert content.count("SWIFT_VERSION = 6.0;") == 2
    assert "SWIFT_VERSION = 5.0;" not in content
    assert get_setting(content, "PRODUCT_NAME") == "$(TARGET_NAME)"


def test_set_setting_quotes_values_with_spaces():
    content, _ = set_setting(PBXPROJ, "INFOPLIST_KEY_CFBundleDisplayName", "My App")
    assert 'INFOPLIST_KEY_CFBundleDisplayName = "My App";' in content
    assert get_setting(content, "INFOPLIST_KEY_CFBundleDisplayName") == "My App"


def test_project_config_set_writes_file(tmp_path):
    project = tmp_path / "project.pbxproj"
    project.write_text(PBXPROJ, encoding="utf-8")

    result = project_config(tmp_path, "set project.pbxproj SWIFT_VERSION 6.0")

    assert result.error is None
    assert result.output == "Successfully set SWIFT_VERSION = 6.0 in project.pbxproj"
    assert get_setting(project.read_text(encoding="utf-8"), "SWIFT_VERSION") == "6.0"


def test_project_config_errors(tmp_path):
    assert project_config(tmp_path, "list").error == USAGE
    assert project_config(tmp_path, "list nope.pbxproj").error.startswith("Project file not found")
    project = tmp_path / "project.pbxproj"
    project.write_text(PBXPROJ, encoding="utf-8")
    assert project_config(tmp_path, "get project.pbxproj").error == "Missing key for get"
    assert project_config(tmp_path, "drop project.pbxproj").error == "Unknown action: drop"
