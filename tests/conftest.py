"""Shared fixtures: navigation trees, fake presentations and schedulers."""

import pytest

from tabcluster.core.presentations import Camera

T0 = 1640995200000


@pytest.fixture
def sample_tree():
    """Two browsing sessions across five domains"""
    return {
        "1-1640995200000": {
            "id": "1-1640995200000",
            "tabId": 1,
            "url": "https://github.com/user/repo",
            "title": "GitHub Repository",
            "createdAt": 1640995200000,
            "children": [
                {
                    "id": "2-1640995260000",
                    "tabId": 2,
                    "url": "https://github.com/user/repo/issues",
                    "title": "Issues",
                    "createdAt": 1640995260000,
                    "children": [
                        {
                            "id": "3-1640995320000",
                            "tabId": 3,
                            "url": "https://stackoverflow.com/questions/12345",
                            "title": "Stack Overflow Question",
                            "createdAt": 1640995320000,
                            "children": [],
                        }
                    ],
                },
                {
                    "id": "4-1640995380000",
                    "tabId": 4,
                    "url": "https://docs.github.com/en/issues",
                    "title": "GitHub Docs",
                    "createdAt": 1640995380000,
                    "children": [],
                },
            ],
        },
        "5-1640995440000": {
            "id": "5-1640995440000",
            "tabId": 5,
            "url": "https://www.google.com/search?q=javascript",
            "title": "Google Search",
            "createdAt": 1640995440000,
            "children": [
                {
                    "id": "6-1640995500000",
                    "tabId": 6,
                    "url": "https://developer.mozilla.org/en-US/docs/Web/JavaScript",
                    "title": "MDN JavaScript",
                    "createdAt": 1640995500000,
                    "children": [],
                }
            ],
        },
    }


@pytest.fixture
def github_tree():
    """Root A (github) opening B (github) and then C (stackoverflow)"""
    return {
        "A": {
            "id": "A",
            "url": "https://github.com/org/project",
            "title": "A",
            "createdAt": T0,
            "children": [
                {"id": "B", "url": "https://github.com/org/project/pulls", "title": "B",
                 "createdAt": T0 + 1000, "children": []},
                {"id": "C", "url": "https://stackoverflow.com/q/1", "title": "C",
                 "createdAt": T0 + 2000, "children": []},
            ],
        }
    }


# --- Schedulers ----------------------------------------------------------

def sync_scheduler(delay_ms, callback):
    callback()


class ManualScheduler:
    """Collects scheduled callbacks until the test runs them"""

    def __init__(self):
        self.pending = []

    def __call__(self, delay_ms, callback):
        self.pending.append((delay_ms, callback))

    def run_next(self):
        delay_ms, callback = self.pending.pop(0)
        callback()
        return delay_ms

    def run_all(self, limit=100):
        count = 0
        while self.pending and count < limit:
            self.run_next()
            count += 1
        return count


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


# --- Fake rendering collaborators -----------------------------------------

class FakeContainer:
    def __init__(self):
        self.cleared = 0
        self.overlay = []

    def clear(self):
        self.cleared += 1

    def show_overlay(self):
        self.overlay.append("show")

    def hide_overlay(self):
        self.overlay.append("hide")


class FakePresentation:
    """Records its lifecycle into a shared log"""

    def __init__(self, mode, log, container, manager, config):
        self.mode = mode
        self.log = log
        self.container = container
        self.manager = manager
        self.config = config
        self.camera = Camera()
        self.selection = set()
        self.opacity = 1.0
        self.updates = []
        self.options = {}
        log.append(("create", mode))

    def node_ids(self):
        return set(self.manager.domain_graph.node_index)

    def set_camera(self, camera):
        self.camera = camera.copy()

    def restore_selection(self, node_ids):
        self.selection = set(node_ids) & self.node_ids()

    def update_data(self, manager):
        self.updates.append(manager)

    def update_options(self, **changes):
        self.options.update(changes)

    def destroy(self):
        self.log.append(("destroy", self.mode))


class BrokenPresentation(FakePresentation):
    def destroy(self):
        self.log.append(("destroy", self.mode))
        raise RuntimeError("renderer already gone")


class BarePresentation:
    """No destroy(); the controller must clear the container itself"""

    def __init__(self, container, manager, config):
        self.opacity = 1.0


class StalledPresentation(FakePresentation):
    """Fades that never report completion"""

    def fade_out(self, duration_ms, done):
        self.log.append(("fade_out", self.mode))
        self.stalled = done

    def fade_in(self, duration_ms, done):
        self.log.append(("fade_in", self.mode))
        self.stalled = done


def make_factories(log, cls=FakePresentation):
    return {
        mode: (lambda container, manager, config, mode=mode: cls(mode, log, container, manager, config))
        for mode in ("hierarchy", "cluster")
    }


@pytest.fixture
def container():
    return FakeContainer()


class SignalRecorder:
    """Collects every controller signal in emission order"""

    def __init__(self, controller):
        self.events = []
        controller.mode_changed.connect(lambda mode: self.events.append(("mode_changed", mode)))
        controller.transition_started.connect(
            lambda old, new: self.events.append(("transition_started", old, new)))
        controller.transition_finished.connect(
            lambda old, new: self.events.append(("transition_finished", old, new)))
        controller.overlay_toggled.connect(lambda shown: self.events.append(("overlay", shown)))

    def of(self, name):
        return [e for e in self.events if e[0] == name]
