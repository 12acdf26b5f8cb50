"""Pytest configuration and shared fixtures."""
import pytest

from formstate import FormControl, FormGroup, Validators, reset_config


class Recorder:
    """Collects the emissions of a control's notification channels."""

    def __init__(self, control):
        self.values = []
        self.statuses = []
        self.refreshes = 0
        control.value_changes.subscribe(self.values.append)
        control.status_changes.subscribe(self.statuses.append)
        control.view_refresh.subscribe(self._on_refresh)

    def _on_refresh(self):
        self.refreshes += 1


@pytest.fixture(autouse=True)
def reset_formstate_config():
    """Start and end every test on the default configuration."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def record():
    """Factory attaching a Recorder to a control."""
    return Recorder


@pytest.fixture
def profile_form():
    """Provide the name/age form: name is required and starts empty."""
    return FormGroup({
        'name': FormControl('', Validators.required),
        'age': FormControl(None),
    })


@pytest.fixture
def nested_form():
    """Provide a three-level form.

    root
    ├── profile
    │   ├── address
    │   │   └── street
    │   └── phone
    └── settings
        └── theme
    """
    return FormGroup({
        'profile': FormGroup({
            'address': FormGroup({'street': FormControl('Main St')}),
            'phone': FormControl('555'),
        }),
        'settings': FormGroup({'theme': FormControl('dark')}),
    })
