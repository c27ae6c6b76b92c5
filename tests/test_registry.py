from topolop.core.registry import EntityRegistry
from topolop.models.enums import EntityType


class TestEntityRegistry:
    def test_same_path_returns_same_entity(self):
        registry = EntityRegistry()
        first = registry.get_or_create("src/a.c", tool_name="clang", original_identifier="/p/src/a.c")
        second = registry.get_or_create("src/a.c", tool_name="semgrep")
        assert first is second
        assert first.id == "entity:src/a.c"
        assert first.name == "a.c"
        assert first.original_identifier == "/p/src/a.c"
        assert first.tool_name == "clang"
        assert len(registry) == 1
        assert "src/a.c" in registry

    def test_flags_are_recorded(self):
        registry = EntityRegistry()
        entity = registry.get_or_create(
            "/usr/include/x.h", confidence=0.5, flags={"externalToProject": True}
        )
        assert entity.confidence == 0.5
        assert entity.metadata == {"externalToProject": True}

    def test_more_specific_type_wins(self):
        registry = EntityRegistry()
        registry.get_or_create("services/api", EntityType.FILE, tool_name="semgrep")
        entity = registry.get_or_create("services/api", EntityType.APPLICATION, tool_name="datadog")
        assert entity.type == EntityType.APPLICATION
        assert entity.metadata["typeConflicts"] == [
            {"type": "application", "toolName": "datadog"},
            {"type": "file", "toolName": "semgrep"},
        ]
        assert registry.get("services/api") == entity

    def test_less_specific_type_is_recorded_but_ignored(self):
        registry = EntityRegistry()
        registry.get_or_create("package.json", EntityType.FILE, tool_name="semgrep")
        entity = registry.get_or_create("package.json", EntityType.DEPENDENCY, tool_name="npm-audit")
        assert entity.type == EntityType.FILE
        assert len(entity.metadata["typeConflicts"]) == 2

    def test_entities_sorted_by_id(self):
        registry = EntityRegistry()
        for path in ("src/z.py", "lib/a.py", "src/b.py"):
            registry.get_or_create(path)
        assert [e.canonical_path for e in registry.entities()] == ["lib/a.py", "src/b.py", "src/z.py"]

    def test_merge_is_independent_of_call_order(self):
        calls = [
            dict(entity_type=EntityType.FILE, tool_name="semgrep", original_identifier="./src/a.c", confidence=0.8),
            dict(entity_type=EntityType.APPLICATION, tool_name="datadog", original_identifier="/p/src/a.c"),
            dict(
                entity_type=EntityType.FILE, tool_name="clang", original_identifier="src\\a.c",
                confidence=0.5, flags={"externalToProject": True},
            ),
        ]
        forward, backward = EntityRegistry(), EntityRegistry()
        for kwargs in calls:
            forward.get_or_create("src/a.c", **kwargs)
        for kwargs in reversed(calls):
            backward.get_or_create("src/a.c", **kwargs)

        entity = forward.get("src/a.c")
        assert entity == backward.get("src/a.c")
        assert entity.type == EntityType.APPLICATION
        assert (entity.original_identifier, entity.tool_name) == ("./src/a.c", "semgrep")
        assert entity.confidence == 1.0
        assert entity.metadata["externalToProject"] is True
        assert [c["toolName"] for c in entity.metadata["typeConflicts"]] == ["datadog", "clang", "semgrep"]

    def test_repeat_call_without_changes_returns_same_object(self):
        registry = EntityRegistry()
        first = registry.get_or_create("src/a.c", tool_name="clang")
        assert registry.get_or_create("src/a.c", tool_name="clang") is first
