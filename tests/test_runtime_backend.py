from types import SimpleNamespace

import pytest

from modules.pyre_narrator import runtime_backend
from modules.pyre_narrator.locator import HandleLocator
from modules.pyre_narrator.runtime_backend import JPypeRuntimeBackend, default_backends


class FakeJClassError(Exception):
    pass


def fake_jpype(classes, started=True):
    def JClass(name):
        try:
            return classes[name]
        except KeyError:
            raise FakeJClassError(name) from None

    return SimpleNamespace(isJVMStarted=lambda: started, JClass=JClass)


class CardManagerClass:
    instance = SimpleNamespace(GetHand=lambda: [])


def test_packages_are_tried_before_bare_names(monkeypatch):
    monkeypatch.setattr(
        runtime_backend,
        "jpype",
        fake_jpype({"com.shinyshoe.CardManager": "qualified", "CardManager": "bare"}),
    )

    assert JPypeRuntimeBackend(["com.shinyshoe"]).lookup("CardManager") == "qualified"
    assert JPypeRuntimeBackend().lookup("CardManager") == "bare"


def test_nested_classes_use_binary_names(monkeypatch):
    marker = object()
    monkeypatch.setattr(runtime_backend, "jpype", fake_jpype({"com.shinyshoe.Team$Type": marker}))

    assert JPypeRuntimeBackend(["com.shinyshoe"]).lookup("Team.Type") is marker


def test_missing_class_is_none(monkeypatch):
    monkeypatch.setattr(runtime_backend, "jpype", fake_jpype({}))

    assert JPypeRuntimeBackend(["com.shinyshoe"]).lookup("RoomManager") is None


def test_stopped_jvm_is_unavailable(monkeypatch):
    monkeypatch.setattr(runtime_backend, "jpype", fake_jpype({"CardManager": "bare"}, started=False))
    backend = JPypeRuntimeBackend()

    assert backend.is_available() is False
    assert backend.lookup("CardManager") is None


def test_missing_jpype_is_unavailable(monkeypatch):
    monkeypatch.setattr(runtime_backend, "jpype", None)

    assert JPypeRuntimeBackend().is_available() is False


def test_locator_reads_jvm_singletons(monkeypatch):
    monkeypatch.setattr(
        runtime_backend,
        "jpype",
        fake_jpype({"com.shinyshoe.CardManager": CardManagerClass}),
    )
    locator = HandleLocator([JPypeRuntimeBackend(["com.shinyshoe"])])

    handle = locator.handle("CardManager")

    assert handle.target is CardManagerClass.instance
    assert handle.backend == "jpype"


@pytest.mark.parametrize("prefixes, packages", [((), ()), (("monster_host",), ("com.shinyshoe",))])
def test_default_backend_order(prefixes, packages):
    backends = default_backends(prefixes, packages)

    assert [backend.name for backend in backends] == ["python", "jpype"]
