import io
from dataclasses import dataclass

import pytest

from agentflow.tools.exec_tool import ExecTool
from agentflow.tools.http_tool import HttpTool
from agentflow.tools.manifest import (
    KindRegistry,
    Manifest,
    ManifestError,
    load_and_build,
    load_manifest,
)
from agentflow.tools.spec import Spec

GOOD_MANIFEST = """{
  "tools": [
    {"name":"upper", "kind":"http", "url":"http://example.invalid/upper"},
    {"name":"wc",    "kind":"exec", "command":["wc", "-w"]}
  ]
}"""


@dataclass
class StubTool:
    name: str

    def execute(self, args=None):
        return self.name


def test_load_and_build_happy_path():
    built = load_and_build(io.StringIO(GOOD_MANIFEST), KindRegistry())
    assert [tool.name for tool in built] == ["upper", "wc"]
    assert isinstance(built[0], HttpTool)
    assert isinstance(built[1], ExecTool)
    assert built[1].command == ("wc", "-w")


def test_load_keeps_raw_entries():
    manifest = load_manifest(GOOD_MANIFEST.encode())
    assert manifest.tools[0].name == "upper"
    assert manifest.tools[0].raw["url"] == "http://example.invalid/upper"
    assert manifest.tools[1].raw["command"] == ["wc", "-w"]


def test_load_rejects_unknown_top_level_field():
    with pytest.raises(ManifestError):
        load_manifest('{"tools":[],"oops":1}')


def test_load_rejects_non_object_entry():
    with pytest.raises(ManifestError, match=r"tools\[0\]"):
        load_manifest('{"tools":[5]}')


def test_load_rejects_bad_json():
    with pytest.raises(ManifestError, match="flow/tools: load"):
        load_manifest("{not json")


def test_build_rejects_duplicate_name():
    source = """{
        "tools":[
            {"name":"x","kind":"exec","command":["true"]},
            {"name":"x","kind":"exec","command":["true"]}
        ]}"""
    with pytest.raises(ManifestError) as info:
        load_and_build(source, KindRegistry())
    assert "duplicate name" in str(info.value)
    assert len(info.value.issues) == 1


def test_build_rejects_unknown_kind():
    with pytest.raises(ManifestError, match="unknown kind"):
        load_and_build('{"tools":[{"name":"x","kind":"nope"}]}', KindRegistry())


@pytest.mark.parametrize(
    "source, want",
    [
        ('{"tools":[{"name":"","kind":"exec","command":["true"]}]}', "empty name"),
        ('{"tools":[{"name":"x","kind":""}]}', "empty kind"),
        ('{"tools":[{"name":"x","kind":"http"}]}', 'missing "url"'),
        ('{"tools":[{"name":"x","kind":"exec"}]}', 'missing "command"'),
    ],
)
def test_build_rejects_missing_required_fields(source, want):
    with pytest.raises(ManifestError) as info:
        load_and_build(source, KindRegistry())
    assert want in str(info.value)


def test_build_reports_every_issue():
    source = '{"tools":[{"name":"","kind":"exec"},{"name":"y","kind":"nope"}]}'
    with pytest.raises(ManifestError) as info:
        load_and_build(source, KindRegistry())
    assert len(info.value.issues) == 2
    assert str(info.value).startswith("flow/tools: 2 issue(s)")


def test_register_custom_kind():
    registry = KindRegistry()
    registry.register_kind("stub", lambda spec: StubTool(name=spec.name))
    built = load_and_build('{"tools":[{"name":"hi","kind":"stub"}]}', registry)
    assert len(built) == 1
    assert built[0].name == "hi"
    assert built[0].execute(None) == "hi"


def test_register_duplicate_kind_rejected():
    registry = KindRegistry()
    with pytest.raises(ManifestError, match="already registered"):
        registry.register_kind("http", lambda spec: StubTool(name=spec.name))


def test_register_empty_name_rejected():
    with pytest.raises(ManifestError, match="empty name"):
        KindRegistry().register_kind("", lambda spec: StubTool(name=spec.name))


def test_build_empty_manifest():
    assert KindRegistry().build(Manifest()) == []
    assert load_and_build('{"tools":[]}') == []


def test_build_direct_manifest():
    manifest = Manifest(tools=[Spec("w", "exec", {"command": ["true"]})])
    built = KindRegistry().build(manifest)
    assert [tool.name for tool in built] == ["w"]