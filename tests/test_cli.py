"""
Tests for the CLI module.
"""

import io
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from js_flow_checker.cli import main


FIXTURE_PROJECT = Path(__file__).parent / "fixtures" / "project"


class TestCLI(unittest.TestCase):
    """Test cases for the command-line interface."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name) / "project"
        shutil.copytree(FIXTURE_PROJECT, self.root)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_version_argument(self):
        """Test that --version flag works."""
        with self.assertRaises(SystemExit) as cm:
            with patch('sys.stdout', new_callable=io.StringIO):
                main(['--version'])
        self.assertEqual(cm.exception.code, 0)

    def test_help_argument(self):
        """Test that --help flag works."""
        with self.assertRaises(SystemExit) as cm:
            with patch('sys.stdout', new_callable=io.StringIO):
                main(['--help'])
        self.assertEqual(cm.exception.code, 0)

    def test_no_command(self):
        """Test that running without a command prints help and fails."""
        with patch('sys.stdout', new_callable=io.StringIO) as mock_stdout:
            exit_code = main([])
        self.assertEqual(exit_code, 1)
        self.assertIn("usage", mock_stdout.getvalue())

    def test_nonexistent_path(self):
        """Test error handling for non-existent paths."""
        with patch('sys.stderr', new_callable=io.StringIO) as mock_stderr:
            exit_code = main(['analyze', '/nonexistent/path/to/file.js'])
            self.assertEqual(exit_code, 1)
            self.assertIn("does not exist", mock_stderr.getvalue())

    def test_analyze_directory(self):
        """Test analysis of a project directory."""
        with patch('sys.stdout', new_callable=io.StringIO) as mock_stdout:
            exit_code = main(['analyze', str(self.root)])
        self.assertEqual(exit_code, 0)
        output = mock_stdout.getvalue()
        self.assertIn("'nested/a' -> lib/nested/a.js", output)
        self.assertIn("'foo' -> unresolved (too-short)", output)
        self.assertIn("sink1 is TAINTED", output)

    def test_analyze_output_file(self):
        """Test writing results to a JSON file."""
        output = self.root / "out.json"
        with patch('sys.stdout', new_callable=io.StringIO):
            exit_code = main(['analyze', str(self.root / "tst4.js"), '-o', str(output)])
        self.assertEqual(exit_code, 0)

        with open(output) as f:
            saved = json.load(f)
        self.assertEqual(saved["file"], "tst4.js")

    def test_verbose_flag(self):
        """Test that verbose flag is properly passed."""
        with patch('sys.stdout', new_callable=io.StringIO) as mock_stdout:
            exit_code = main(['analyze', str(self.root), '--verbose'])
        self.assertEqual(exit_code, 0)
        self.assertIn("Parsing file", mock_stdout.getvalue())

    def test_resolve_command(self):
        """Test resolving names from the command line."""
        with patch('sys.stdout', new_callable=io.StringIO) as mock_stdout:
            exit_code = main(['resolve', 'a.js', 'foo', 'nested/a', 'lib/foo.js', '--root', str(self.root)])
        self.assertEqual(exit_code, 0)
        lines = mock_stdout.getvalue().splitlines()
        self.assertTrue(lines[0].startswith("a.js: not resolved: ambiguous"))
        self.assertEqual(lines[1], "foo: not resolved: too-short")
        self.assertEqual(lines[2], "nested/a: resolved to `lib/nested/a.js`")
        self.assertEqual(lines[3], "lib/foo.js: resolved to `lib/foo.js`")

    def test_resolve_bad_root(self):
        """Test the resolve command with a missing root."""
        with patch('sys.stderr', new_callable=io.StringIO):
            exit_code = main(['resolve', 'foo', '--root', str(self.root / "missing")])
        self.assertEqual(exit_code, 1)

    def test_check_passes(self):
        """Test the check command on matching annotations."""
        with patch('sys.stdout', new_callable=io.StringIO) as mock_stdout:
            exit_code = main(['check', str(self.root)])
        self.assertEqual(exit_code, 0)
        self.assertIn("All annotations", mock_stdout.getvalue())

    def test_check_fails_on_mismatch(self):
        """Test the check command exit code on a wrong annotation."""
        tst4 = self.root / "tst4.js"
        tst4.write_text(tst4.read_text().replace("not resolved: ambiguous", "resolved to `lib/a.js`"))
        with patch('sys.stdout', new_callable=io.StringIO) as mock_stdout:
            exit_code = main(['check', str(self.root)])
        self.assertEqual(exit_code, 1)
        self.assertIn("tst4.js: line 2", mock_stdout.getvalue())


if __name__ == '__main__':
    unittest.main()
