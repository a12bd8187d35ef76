import errno
import signal

import pytest
from click.testing import CliRunner

pytest.importorskip("bcc")

from tls_tap import __main__ as cli  # noqa: E402
from tls_tap.attach import TCAttachment  # noqa: E402
from tls_tap.constants import EGRESS_PARENT, INGRESS_PARENT  # noqa: E402

from tests.helpers import FakeIPRoute, FakeProgram  # noqa: E402


@pytest.fixture(autouse=True)
def restore_sigusr1():
    previous = signal.getsignal(signal.SIGUSR1)
    yield
    signal.signal(signal.SIGUSR1, previous)


def patch_attachment(monkeypatch, ipr, program):
    def factory(interface, loader, keep_attached=False):
        return TCAttachment(interface, loader=lambda: program, ipr=ipr, keep_attached=keep_attached)

    monkeypatch.setattr(cli, "TCAttachment", factory)


def test_unknown_interface(monkeypatch, tmp_path):
    ipr = FakeIPRoute(links={})
    patch_attachment(monkeypatch, ipr, FakeProgram())
    pidfile = tmp_path / "tls-tap.pid"

    result = CliRunner().invoke(cli.main, ["nope0", "--quiet", "--pidfile", str(pidfile)])

    assert result.exit_code == 1
    assert "nope0" in result.output
    assert ipr.closed
    assert not pidfile.exists()


def test_no_direction_attached(monkeypatch):
    ipr = FakeIPRoute(
        failures={
            ("add-filter", INGRESS_PARENT): errno.EINVAL,
            ("add-filter", EGRESS_PARENT): errno.EINVAL,
        }
    )
    program = FakeProgram()
    patch_attachment(monkeypatch, ipr, program)

    result = CliRunner().invoke(cli.main, ["eth0", "--quiet"])

    assert result.exit_code == 1
    assert "either direction" in result.output
    assert program.closed
