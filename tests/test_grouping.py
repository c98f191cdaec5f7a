from exposebridge.generate.grouping import (
    camel_case,
    group_by_namespace,
    namespace_class,
    pascal_case,
    resolve_namespace,
    snake_case,
)
from exposebridge.model.nodes import MarkerDirective, SourceLocation
from exposebridge.model.records import ExposedFunction


def _fn(name, namespace, owner=None, line=1):
    return ExposedFunction(
        kind="method" if owner else "function",
        name=name,
        owner=owner,
        type=0,
        directive=MarkerDirective("expose"),
        namespace=namespace,
        location=SourceLocation("api.py", None, line, 0, line, 0),
    )


class TestCaseHelpers:
    def test_camel_case(self):
        assert camel_case("UserService") == "userService"

    def test_pascal_case(self):
        assert pascal_case("userAPI") == "UserAPI"

    def test_namespace_class(self):
        assert namespace_class("userAPI") == "UserAPINamespace"
        assert namespace_class("user") == "UserNamespace"

    def test_snake_case(self):
        assert snake_case("UserService") == "user_service"
        assert snake_case("HTTPClient") == "http_client"


class TestResolveNamespace:
    def test_explicit_argument_wins(self):
        directive = MarkerDirective("expose", ("files",))
        assert resolve_namespace(directive, "UserService", "mainProcess") == "files"

    def test_owner_class(self):
        directive = MarkerDirective("expose")
        assert resolve_namespace(directive, "UserService", "mainProcess") == "userService"

    def test_default(self):
        directive = MarkerDirective("expose")
        assert resolve_namespace(directive, None, "core") == "core"


class TestGroupByNamespace:
    def test_groups_and_members_are_sorted(self):
        groups = group_by_namespace(
            [
                _fn("zeta", "userAPI"),
                _fn("getUptime", "mainProcess"),
                _fn("alpha", "userAPI"),
            ]
        )

        assert [g.key for g in groups] == ["mainProcess", "userAPI"]
        assert [f.name for f in groups[1].functions] == ["alpha", "zeta"]

    def test_duplicate_channel_key_warns(self, logger):
        groups = group_by_namespace(
            [_fn("load", "store", "A", line=3), _fn("load", "store", "B", line=9)],
            logger,
        )

        assert len(groups[0].functions) == 2
        assert logger.warnings == [
            'Channel key "store:load" is exposed more than once: api.py:3 and api.py:9'
        ]
