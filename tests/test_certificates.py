"""Tests for nested_edge.core.certificates — CertificateOrchestrator."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from nested_edge.core.certificates import CertificateOrchestrator
from nested_edge.core.errors import CertificateError
from nested_edge.core.executor import CertificateTool, CommandExecutor
from nested_edge.core.models import DeviceNode
from tests.conftest import completed


def _make_orchestrator(root, activity_log):
    tool = CertificateTool(CommandExecutor(), activity_log)
    return CertificateOrchestrator(root, tool, activity_log)


def _fake_openssl(fail_dirs: frozenset[str] = frozenset()):
    def run(args, **kwargs):
        cert_path = Path(args[args.index("-out") + 1])
        if cert_path.parent.name in fail_dirs:
            return completed(1, "", f"cannot write {cert_path}")
        return completed(0, "", "writing new private key")

    return run


def _out_paths(mock_run) -> list[Path]:
    return [Path(c.args[0][c.args[0].index("-out") + 1]) for c in mock_run.call_args_list]


class TestRootCertificate:
    @patch("nested_edge.core.executor.subprocess.run")
    def test_writes_into_certs_folder(self, mock_run, sample_tree, activity_log, console_buffer):
        mock_run.side_effect = _fake_openssl()
        cert = _make_orchestrator(sample_tree, activity_log).make_root_certificate()

        certs_dir = activity_log.base_path / "certs"
        assert cert == certs_dir / "root.pem"
        assert certs_dir.is_dir()
        args = mock_run.call_args.args[0]
        assert args[args.index("-keyout") + 1] == str(certs_dir / "root.key.pem")
        assert "Successfully made Root CA" in console_buffer.getvalue()

    @patch("nested_edge.core.executor.subprocess.run")
    def test_failure_raises(self, mock_run, sample_tree, activity_log):
        mock_run.side_effect = _fake_openssl(fail_dirs=frozenset({"certs"}))
        with pytest.raises(CertificateError) as exc_info:
            _make_orchestrator(sample_tree, activity_log).make_root_certificate()
        assert exc_info.value.device_ids == ["root"]

    @patch("nested_edge.core.executor.subprocess.run")
    def test_unwritable_folder_raises_certificate_error(self, mock_run, sample_tree, activity_log):
        with patch.object(activity_log, "create_folder", side_effect=OSError("disk full")):
            with pytest.raises(CertificateError, match="disk full") as exc_info:
                _make_orchestrator(sample_tree, activity_log).make_root_certificate()
        assert exc_info.value.device_ids == ["root"]
        mock_run.assert_not_called()


class TestDeviceCertificates:
    @patch("nested_edge.core.executor.subprocess.run")
    def test_one_call_per_device(self, mock_run, sample_tree, activity_log, console_buffer):
        mock_run.side_effect = _fake_openssl()
        report = _make_orchestrator(sample_tree, activity_log).make_all_device_certificates()

        assert report.ok
        assert (report.attempted, report.succeeded) == (4, 4)
        assert sorted(p.parent.name for p in _out_paths(mock_run)) == ["A", "B", "C", "root"]
        assert all(p.name == "cert.pem" for p in _out_paths(mock_run))
        for device_id in ("root", "A", "B", "C"):
            assert (activity_log.base_path / device_id).is_dir()
        assert "Created all device certs." in console_buffer.getvalue()

    @patch("nested_edge.core.executor.subprocess.run")
    def test_single_device(self, mock_run, activity_log):
        mock_run.side_effect = _fake_openssl()
        orch = _make_orchestrator(DeviceNode("edge-1"), activity_log)
        outcome = orch.make_device_certificate("edge-1")
        assert outcome.success
        assert outcome.payload == activity_log.base_path / "edge-1" / "cert.pem"

    @patch("nested_edge.core.executor.subprocess.run")
    def test_failures_name_every_device(self, mock_run, sample_tree, activity_log, console_buffer):
        mock_run.side_effect = _fake_openssl(fail_dirs=frozenset({"A", "B"}))

        with pytest.raises(CertificateError) as exc_info:
            _make_orchestrator(sample_tree, activity_log).make_all_device_certificates()

        assert exc_info.value.device_ids == ["A", "B"]
        # siblings still ran
        assert len(mock_run.call_args_list) == 4
        assert "Created all device certs." not in console_buffer.getvalue()

    @patch("nested_edge.core.executor.subprocess.run")
    def test_unwritable_device_folder_is_a_device_failure(
        self, mock_run, sample_tree, activity_log, console_buffer
    ):
        mock_run.side_effect = _fake_openssl()
        create_folder = activity_log.create_folder

        def flaky(name):
            if name == "C":
                raise OSError("disk full")
            return create_folder(name)

        with patch.object(activity_log, "create_folder", side_effect=flaky):
            with pytest.raises(CertificateError) as exc_info:
                _make_orchestrator(sample_tree, activity_log).make_all_device_certificates()

        assert exc_info.value.device_ids == ["C"]
        assert "disk full" in exc_info.value.failures[0].diagnostics
        assert len(mock_run.call_args_list) == 3
        assert "Failed to create folder for C" in console_buffer.getvalue()

    @patch("nested_edge.core.executor.subprocess.run")
    def test_dot_dot_device_stays_inside_output(self, mock_run, activity_log):
        mock_run.side_effect = _fake_openssl()
        orch = _make_orchestrator(DeviceNode("root", (DeviceNode(".."),)), activity_log)

        with pytest.raises(CertificateError) as exc_info:
            orch.make_all_device_certificates()

        assert exc_info.value.device_ids == [".."]
        assert [p.parent.name for p in _out_paths(mock_run)] == ["root"]
