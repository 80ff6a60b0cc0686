from __future__ import annotations

from pathlib import Path
import tempfile
import textwrap
import unittest

from otter.environment import RuntimeContext
from otter.errors import ConfigError
from otter.otterfile import (
    Keyword,
    LayerSpec,
    find_otterfile,
    iter_logical_lines,
    parse_otterfile,
    parse_otterfile_text,
    tokenize_layer_arguments,
)


def make_context(env: dict[str, str] | None = None) -> RuntimeContext:
    return RuntimeContext(os_name="linux", architecture="amd64", cwd=Path("/work"), environ=env or {})


def parse(text: str, env: dict[str, str] | None = None):
    return parse_otterfile_text(textwrap.dedent(text), make_context(env))


class VarStatementTests(unittest.TestCase):
    def test_variables_and_layers_in_order(self) -> None:
        plan = parse(
            """
            VAR A=1
            VAR B=2
            VAR A=3
            LAYER ./one
            LAYER ./two
            LAYER ./three
            """
        )
        self.assertEqual(plan.variables, {"A": "3", "B": "2"})
        self.assertEqual([layer.source for layer in plan.layers], ["./one", "./two", "./three"])

    def test_value_keeps_embedded_whitespace_and_equals(self) -> None:
        plan = parse("VAR GREETING = hello   big world=yes\n")
        self.assertEqual(plan.variables, {"GREETING": "hello big world=yes"})

    def test_value_references_earlier_variable(self) -> None:
        plan = parse(
            """
            VAR ORG=acme
            VAR REPO=git@github.com:${ORG}/base.git
            """
        )
        self.assertEqual(plan.variables["REPO"], "git@github.com:acme/base.git")

    def test_missing_equals_is_fatal(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse("VAR ONLYNAME\n")
        self.assertEqual(ctx.exception.line, 1)

    def test_empty_name_is_fatal(self) -> None:
        with self.assertRaises(ConfigError):
            parse("VAR =value\n")

    def test_var_without_arguments_is_fatal(self) -> None:
        with self.assertRaises(ConfigError):
            parse("VAR\n")


class LayerStatementTests(unittest.TestCase):
    def test_defaults(self) -> None:
        plan = parse("LAYER git@github.com:otter-layers/base.git\n")
        self.assertEqual(plan.layers, [LayerSpec(source="git@github.com:otter-layers/base.git")])
        self.assertEqual(plan.layers[0].target, ".")

    def test_target_is_substituted(self) -> None:
        plan = parse(
            """
            VAR PROJECT=demo
            LAYER ./src TARGET out/${PROJECT}
            """
        )
        self.assertEqual(plan.layers[0].target, "out/demo")

    def test_source_and_template_values_are_substituted(self) -> None:
        plan = parse(
            """
            VAR NAME=local-test
            LAYER ${BASE}/app TEMPLATE project=${NAME} env=development
            """,
            env={"OTTER_BASE": "./layers"},
        )
        layer = plan.layers[0]
        self.assertEqual(layer.source, "./layers/app")
        self.assertEqual(layer.template_vars, {"project": "local-test", "env": "development"})

    def test_keywords_are_order_independent_and_case_insensitive(self) -> None:
        plan = parse('LAYER ./x after ["echo done"] if env=test Target sub TEMPLATE a=1 before ["echo start"]\n')
        layer = plan.layers[0]
        self.assertEqual(layer.target, "sub")
        self.assertEqual(layer.condition, "env=test")
        self.assertEqual(layer.template_vars, {"a": "1"})
        self.assertEqual(layer.before, ["echo start"])
        self.assertEqual(layer.after, ["echo done"])

    def test_template_stops_at_token_without_equals(self) -> None:
        plan = parse("LAYER ./x TEMPLATE a=1 b=x=y TARGET out\n")
        layer = plan.layers[0]
        self.assertEqual(layer.template_vars, {"a": "1", "b": "x=y"})
        self.assertEqual(layer.target, "out")

    def test_hook_array_spanning_tokens(self) -> None:
        plan = parse('LAYER ./x BEFORE ["npm install", "echo  ready"] AFTER ["make test"]\n')
        layer = plan.layers[0]
        self.assertEqual(layer.before, ["npm install", "echo ready"])
        self.assertEqual(layer.after, ["make test"])

    def test_keyword_text_as_argument_value(self) -> None:
        plan = parse("LAYER ./x TARGET if\n")
        self.assertEqual(plan.layers[0].target, "if")

    def test_unknown_argument_is_fatal(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse("\n\nLAYER ./x DESTINATION y\n")
        self.assertEqual(ctx.exception.line, 3)
        self.assertIn("unknown LAYER argument: DESTINATION", str(ctx.exception))

    def test_missing_keyword_arguments_are_fatal(self) -> None:
        for text in (
            "LAYER ./x TARGET\n",
            "LAYER ./x IF\n",
            "LAYER ./x TEMPLATE\n",
            "LAYER ./x BEFORE\n",
            "LAYER ./x AFTER\n",
        ):
            with self.subTest(text=text):
                with self.assertRaises(ConfigError):
                    parse(text)

    def test_hook_array_errors(self) -> None:
        for text in (
            'LAYER ./x BEFORE "echo"\n',
            'LAYER ./x BEFORE ["echo", "never closed"\n',
            "LAYER ./x AFTER [not json]\n",
            "LAYER ./x AFTER [1, 2]\n",
        ):
            with self.subTest(text=text):
                with self.assertRaises(ConfigError):
                    parse(text)

    def test_layer_without_source_is_fatal(self) -> None:
        with self.assertRaises(ConfigError):
            parse("LAYER\n")


class GlobalHookTests(unittest.TestCase):
    def test_global_hooks(self) -> None:
        plan = parse(
            """
            ON_BEFORE_BUILD: ["echo 'Starting'", "make clean"]
            ON_AFTER_BUILD: ["make test", "make package", "echo 'Done'"]
            ON_ERROR: ["make clean", "echo 'Error cleanup'"]
            """
        )
        self.assertEqual(plan.on_before_build, ["echo 'Starting'", "make clean"])
        self.assertEqual(plan.on_after_build, ["make test", "make package", "echo 'Done'"])
        self.assertEqual(plan.on_error, ["make clean", "echo 'Error cleanup'"])

    def test_hooks_default_to_empty(self) -> None:
        plan = parse("LAYER ./x\n")
        self.assertEqual(plan.on_before_build, [])
        self.assertEqual(plan.on_after_build, [])
        self.assertEqual(plan.on_error, [])

    def test_malformed_json_is_fatal(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse('LAYER ./x\nON_ERROR: ["unterminated\n')
        self.assertEqual(ctx.exception.line, 2)

    def test_missing_array_is_fatal(self) -> None:
        with self.assertRaises(ConfigError):
            parse("ON_AFTER_BUILD:\n")

    def test_keyword_is_case_insensitive(self) -> None:
        plan = parse('on_before_build: ["true"]\n')
        self.assertEqual(plan.on_before_build, ["true"])


class GrammarTests(unittest.TestCase):
    def test_comments_and_blank_lines_are_skipped(self) -> None:
        plan = parse(
            """
            # a comment

               # indented comment
            LAYER ./x
            """
        )
        self.assertEqual(len(plan.layers), 1)

    def test_unknown_command(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse("LAYER ./x\nCOPY a b\n")
        self.assertEqual(ctx.exception.line, 2)
        self.assertIn("unknown command: COPY", str(ctx.exception))

    def test_line_continuation(self) -> None:
        plan = parse(
            """
            LAYER ./x \\
                TARGET out \\
                BEFORE ["echo one", \\
                        "echo two"]
            """
        )
        layer = plan.layers[0]
        self.assertEqual(layer.target, "out")
        self.assertEqual(layer.before, ["echo one", "echo two"])

    def test_continuation_error_reports_first_line(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse("VAR A=1\nLAYER ./x \\\n  BOGUS\n")
        self.assertEqual(ctx.exception.line, 2)

    def test_unterminated_continuation_is_fatal(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse("VAR A=1\nLAYER ./x \\\n  TARGET out \\\n")
        self.assertEqual(ctx.exception.line, 2)
        self.assertIn("unterminated line continuation", str(ctx.exception))

    def test_comment_inside_continuation_is_text(self) -> None:
        lines = list(iter_logical_lines("LAYER ./x \\\n# TARGET\n"))
        self.assertEqual(lines, [(1, "LAYER ./x # TARGET")])

    def test_tokenizer_tags_keywords(self) -> None:
        tokens = tokenize_layer_arguments(["target", "out", "IF", "os=linux"])
        self.assertEqual([token.keyword for token in tokens], [Keyword.TARGET, None, Keyword.IF, None])
        self.assertEqual(tokens[0].text, "target")


class FileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_parse_file(self) -> None:
        path = self.root / "Otterfile"
        path.write_text("LAYER ./x TARGET y\n", encoding="utf-8")
        plan = parse_otterfile(path, make_context())
        self.assertEqual(plan.layers[0].target, "y")

    def test_missing_file_is_config_error(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            parse_otterfile(self.root / "Otterfile", make_context())
        self.assertIsNone(ctx.exception.line)

    def test_find_prefers_otterfile(self) -> None:
        (self.root / "Envfile").write_text("", encoding="utf-8")
        self.assertEqual(find_otterfile(self.root), self.root / "Envfile")
        (self.root / "Otterfile").write_text("", encoding="utf-8")
        self.assertEqual(find_otterfile(self.root), self.root / "Otterfile")

    def test_find_override(self) -> None:
        self.assertEqual(find_otterfile(self.root, "custom/Otterfile"), self.root / "custom" / "Otterfile")
        self.assertEqual(find_otterfile(self.root, "/abs/file"), Path("/abs/file"))

    def test_find_without_candidates_fails(self) -> None:
        with self.assertRaises(ConfigError):
            find_otterfile(self.root)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
