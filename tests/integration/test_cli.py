"""Tests for the decimalenv command line."""

import pytest

from decimalenv.cli import build_parser, main


class TestMain:
    def test_default_output(self, capsys):
        assert main(['21.0 + "21.0"']) == 0
        assert capsys.readouterr().out.strip() == "42.0"

    def test_precision(self, capsys):
        assert main(["1 / 3", "--precision", "2"]) == 0
        assert capsys.readouterr().out.strip() == "0.33"

    def test_rounding_and_integer_output(self, capsys):
        argv = ["21.1 + 20", "--precision", "2", "--rounding", "ceiling", "--as", "integer"]
        assert main(argv) == 0
        assert capsys.readouterr().out.strip() == "42"

    def test_scientific_output(self, capsys):
        assert main(['"0.0000000002" + 0.000000004', "--as", "scientific"]) == 0
        assert capsys.readouterr().out.strip() == "4.2E-9"

    def test_bind(self, capsys):
        assert main(["a * (4 + 1 + a*a)", "--bind", "a=3"]) == 0
        assert capsys.readouterr().out.strip() == "42"

    def test_repeated_bind(self, capsys):
        assert main(["a + b", "--bind", "a=40", "--bind", "b=2.0"]) == 0
        assert capsys.readouterr().out.strip() == "42.0"

    def test_verbose_logs_to_stderr(self, capsys):
        assert main(["1 / 3", "--precision", "2", "-v"]) == 0
        captured = capsys.readouterr()
        assert captured.out.strip() == "0.33"
        assert "decimal_block_evaluated" in captured.err

    def test_quiet_by_default(self, capsys):
        main(["1 / 3"])
        assert capsys.readouterr().err == ""


class TestErrors:
    @pytest.mark.parametrize(
        "argv,message",
        [
            (["'abc' + 1"], "'abc' is not a valid numeric value"),
            (["missing + 1"], "Variable 'missing' is not bound"),
            (["round(1, 0, sideways)"], "Unknown rounding strategy"),
            (["1 / 4", "--as", "integer"], "not an integral value"),
            (["1", "--precision", "0"], "Invalid context overrides"),
            (["a", "--bind", "1a=3"], "plain name"),
        ],
    )
    def test_evaluation_errors(self, capsys, argv, message):
        assert main(argv) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Error:" in captured.err
        assert message in captured.err

    def test_trapped_signal(self, capsys):
        assert main(["1 / 0"]) == 1
        assert "DivisionByZero" in capsys.readouterr().err

    def test_malformed_bind(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["a", "--bind", "oops"])
        assert exc_info.value.code == 2
        assert "NAME=VALUE" in capsys.readouterr().err

    def test_unknown_output_tag(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["1", "--as", "hex"])
        assert exc_info.value.code == 2
