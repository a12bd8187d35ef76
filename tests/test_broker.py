import json
import threading

from prometheus_client import REGISTRY

from tls_tap.broker import ConsoleBroker, FanoutBroker, JsonLinesBroker, MetricsBroker
from tls_tap.event import Address, TLSHandshakeEvent


def make_event(**kwargs):
    fields = dict(
        client=Address("10.0.0.1", 51000, process="curl (PID 10)"),
        server=Address("93.184.216.34", 443),
        tls_versions=(0x0304, 0x0303),
        ciphers=(0x1301, 0xC02F, 0x0A0A),
        server_name="example.com",
        used_tls_version=0x0304,
        used_cipher=0x1301,
    )
    fields.update(kwargs)
    return TLSHandshakeEvent(**fields)


def test_event_to_dict():
    doc = make_event().to_dict()
    assert doc["client"] == {"ip": "10.0.0.1", "port": 51000, "process": "curl (PID 10)"}
    assert doc["server_name"] == "example.com"
    assert doc["tls_versions"] == ["TLS 1.3", "TLS 1.2"]
    assert doc["tls_version"] == "TLS 1.3"
    assert doc["cipher_suite"] == "TLS_AES_128_GCM_SHA256"
    assert doc["cipher_suites_offered"][-1] == "GREASE"


def test_json_lines_broker(tmp_path):
    path = tmp_path / "events.jsonl"
    broker = JsonLinesBroker(path)
    broker.publish(make_event())
    broker.publish(make_event(server_name="other.example"))
    broker.close()
    broker.publish(make_event())

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["server_name"] == "example.com"
    assert "datetime" in first
    assert json.loads(lines[1])["server_name"] == "other.example"


def test_json_lines_broker_reopen(tmp_path):
    path = tmp_path / "events.jsonl"
    rotated = tmp_path / "events.jsonl.1"
    broker = JsonLinesBroker(path)
    broker.publish(make_event())

    path.rename(rotated)
    broker.reopen()
    broker.publish(make_event())
    broker.close()

    assert len(rotated.read_text().splitlines()) == 1
    assert len(path.read_text().splitlines()) == 1


def test_console_broker(capsys):
    ConsoleBroker().publish(make_event())

    out = capsys.readouterr().out
    assert "10.0.0.1:51000 [curl (PID 10)] --> 93.184.216.34:443" in out
    assert "example.com" in out
    assert "TLS 1.3" in out


def test_metrics_broker():
    labels = {"tls_version": "TLS 1.3", "cipher_suite": "TLS_AES_128_GCM_SHA256"}
    before = REGISTRY.get_sample_value("tls_handshakes_total", labels) or 0.0

    MetricsBroker().publish(make_event())

    assert REGISTRY.get_sample_value("tls_handshakes_total", labels) == before + 1


def test_fanout_broker():
    class Sink:
        def __init__(self):
            self.events = []
            self.closed = False

        def publish(self, event):
            self.events.append(event)

        def close(self):
            self.closed = True

    first, second = Sink(), Sink()
    fanout = FanoutBroker([first, second])
    event = make_event()
    fanout.publish(event)
    fanout.reopen()
    fanout.close()

    assert first.events == [event]
    assert second.events == [event]
    assert first.closed and second.closed


def test_json_lines_broker_reopen_while_publishing(tmp_path):
    path = tmp_path / "events.jsonl"
    broker = JsonLinesBroker(path)
    errors = []
    total = 200

    def publish_all():
        try:
            for _ in range(total):
                broker.publish(make_event())
        except Exception as e:
            errors.append(e)

    publisher = threading.Thread(target=publish_all)
    publisher.start()
    while publisher.is_alive():
        broker.reopen()
    publisher.join()
    broker.close()

    assert errors == []
    assert len(path.read_text().splitlines()) == total
