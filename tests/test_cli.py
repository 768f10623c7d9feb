"""CLI argument, config layering, and failure handling tests.

Verifies how ``slugdeploy.cli.main`` turns flags, environment and the
config file into a ``DeployRequest``.
"""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from slugdeploy import cli
from slugdeploy.archive import ArchiveIOError, NotFoundError
from slugdeploy.release import ReleaseError


def _request_for(argv: list[str], cfg: dict[str, object] | None = None, environ: dict[str, str] | None = None):
    args = cli.build_parser().parse_args(argv)
    return cli.build_request(args, cfg or {}, environ or {})


class BuildRequestTests(unittest.TestCase):
    def test_defaults_build_archive_only_request(self) -> None:
        request = _request_for(["notes.txt", "src/"])

        self.assertEqual(request.archive.output_path, Path("release.tar.gz"))
        self.assertEqual(request.archive.top_level_folder, "app")
        self.assertEqual(request.archive.source_paths, ("notes.txt", "src/"))
        self.assertIsNone(request.github)
        self.assertIsNone(request.heroku)

    def test_flags_override_config_and_env_supplies_secrets(self) -> None:
        cfg = {
            "tarball_name": "from-config.tgz",
            "github_repo": "acme/config-repo",
            "github_release_name": "nightly",
            "app": "acme-web",
            "heroku_email": "config@example.com",
            "process_types": {"web": "bin/run", "worker": "bin/work"},
        }
        environ = {"GITHUB_TOKEN": "env-token", "HEROKU_API_KEY": "env-key"}
        request = _request_for(
            [
                "--github-repo",
                "acme/web",
                "--github-commitish",
                "abc123",
                "--process",
                "web=bin/serve",
                "build",
            ],
            cfg,
            environ,
        )

        self.assertEqual(request.archive.output_path, Path("from-config.tgz"))
        self.assertEqual(request.github.repo, "acme/web")
        self.assertEqual(request.github.token, "env-token")
        self.assertEqual(request.github.release_name, "nightly")
        self.assertEqual(request.github.commitish, "abc123")
        self.assertEqual(request.heroku.app, "acme-web")
        self.assertEqual(request.heroku.email, "config@example.com")
        self.assertEqual(request.heroku.api_key, "env-key")
        self.assertEqual(dict(request.heroku.process_types), {"web": "bin/serve", "worker": "bin/work"})
        self.assertEqual(request.heroku.commitish, "abc123")

    def test_github_repo_without_token_exits(self) -> None:
        with self.assertRaises(SystemExit):
            _request_for(["--github-repo", "acme/web", "--github-release-name", "v1", "build"])

    def test_heroku_app_without_credentials_exits(self) -> None:
        with self.assertRaises(SystemExit):
            _request_for(["--app", "acme-web", "build"], environ={"HEROKU_EMAIL": "ops@example.com"})

    def test_defaults_from_request_keeps_only_non_secret_fields(self) -> None:
        request = _request_for(
            ["--github-repo", "acme/web", "--github-release-name", "v1", "--top-level-folder", "srv", "build"],
            environ={"GITHUB_TOKEN": "gh-secret"},
        )

        self.assertEqual(
            cli.defaults_from_request(request),
            {
                "tarball_name": "release.tar.gz",
                "top_level_folder": "srv",
                "github_repo": "acme/web",
                "github_release_name": "v1",
            },
        )

    def test_malformed_process_flag_is_rejected(self) -> None:
        with mock.patch("sys.stderr"), self.assertRaises(SystemExit):
            cli.build_parser().parse_args(["--process", "web", "build"])


class MainTests(unittest.TestCase):
    def test_main_runs_deploy_with_built_request(self) -> None:
        with mock.patch("slugdeploy.cli.config.load_config", return_value={}), mock.patch(
            "slugdeploy.cli.run_deploy"
        ) as run_deploy, mock.patch("slugdeploy.cli.logging.basicConfig"):
            cli.main(["--tarball-name", "out.tgz", "--top-level-folder", "srv", "Procfile"])

        run_deploy.assert_called_once()
        request = run_deploy.call_args.args[0]
        self.assertEqual(request.archive.output_path, Path("out.tgz"))
        self.assertEqual(request.archive.top_level_folder, "srv")

    def test_archive_failure_removes_partial_tarball(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tarball = Path(tmp) / "release.tar.gz"

            def fail(request):
                tarball.write_bytes(b"\x1f\x8b partial")
                raise NotFoundError("no such file or directory", path="missing", operation="stat")

            with mock.patch("slugdeploy.cli.config.load_config", return_value={}), mock.patch(
                "slugdeploy.cli.run_deploy", side_effect=fail
            ), mock.patch("slugdeploy.cli.logging.basicConfig"):
                with self.assertRaises(SystemExit) as ctx:
                    cli.main(["--tarball-name", str(tarball), "missing"])

            self.assertIn("missing", str(ctx.exception.code))
            self.assertFalse(tarball.exists())

    def test_keep_on_failure_leaves_partial_tarball(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tarball = Path(tmp) / "release.tar.gz"

            def fail(request):
                tarball.write_bytes(b"\x1f\x8b partial")
                raise NotFoundError("no such file or directory", path="missing", operation="stat")

            with mock.patch("slugdeploy.cli.config.load_config", return_value={}), mock.patch(
                "slugdeploy.cli.run_deploy", side_effect=fail
            ), mock.patch("slugdeploy.cli.logging.basicConfig"):
                with self.assertRaises(SystemExit):
                    cli.main(["--keep-on-failure", "--tarball-name", str(tarball), "missing"])

            self.assertTrue(tarball.exists())

    def test_open_failure_leaves_existing_output_untouched(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tarball = Path(tmp) / "release.tar.gz"
            tarball.write_bytes(b"previous good slug")
            failure = ArchiveIOError("cannot create output archive", stage="open", path=tarball)

            with mock.patch("slugdeploy.cli.config.load_config", return_value={}), mock.patch(
                "slugdeploy.cli.run_deploy", side_effect=failure
            ), mock.patch("slugdeploy.cli.logging.basicConfig"):
                with self.assertRaises(SystemExit):
                    cli.main(["--tarball-name", str(tarball), "build"])

            self.assertEqual(tarball.read_bytes(), b"previous good slug")

    def test_save_defaults_flag_persists_settings_without_secrets(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            environ = {"GITHUB_TOKEN": "gh-secret", "HEROKU_API_KEY": "hk-secret", "HEROKU_EMAIL": "ops.com"}
            with mock.patch("slugdeploy.config.CONFIG_PATH", config_path), mock.patch.dict(
                "os.environ", environ, clear=True
            ), mock.patch("slugdeploy.cli.run_deploy"), mock.patch("slugdeploy.cli.logging.basicConfig"):
                cli.main(
                    [
                        "--save-defaults",
                        "--github-repo",
                        "acme/web",
                        "--github-release-name",
                        "v1",
                        "--app",
                        "acme-web",
                        "--process",
                        "web=bin/serve",
                        "build",
                    ]
                )

            saved = json.loads(config_path.read_text(encoding="utf-8"))
            self.assertEqual(saved["github_repo"], "acme/web")
            self.assertEqual(saved["app"], "acme-web")
            self.assertEqual(saved["heroku_email"], "ops.com")
            self.assertEqual(saved["process_types"], {"web": "bin/serve"})
            self.assertNotIn("gh-secret", config_path.read_text(encoding="utf-8"))
            self.assertNotIn("hk-secret", config_path.read_text(encoding="utf-8"))

    def test_without_save_defaults_flag_config_is_not_written(self) -> None:
        with mock.patch("slugdeploy.cli.config.load_config", return_value={}), mock.patch(
            "slugdeploy.cli.config.save_defaults"
        ) as save_defaults, mock.patch("slugdeploy.cli.run_deploy"), mock.patch("slugdeploy.cli.logging.basicConfig"):
            cli.main(["Procfile"])

        save_defaults.assert_not_called()

    def test_release_failure_exits_with_message(self) -> None:
        with mock.patch("slugdeploy.cli.config.load_config", return_value={}), mock.patch(
            "slugdeploy.cli.run_deploy", side_effect=ReleaseError("GitHub release failed", status_code=401)
        ), mock.patch("slugdeploy.cli.logging.basicConfig"):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["Procfile"])

        self.assertIn("status=401", str(ctx.exception.code))


if __name__ == "__main__":
    unittest.main()
