"""
Signup form wired the way a UI binding would drive it.

Run with:  python examples/signup_form.py
"""
import asyncio
import logging
from types import SimpleNamespace

from formstate import FormControl, FormGroup, Validators

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("signup_example")

TAKEN_USERNAMES = {"admin", "root"}


def username_available(control):
    """Pretend to ask a backend whether the username is free."""
    username = control.value

    async def lookup():
        await asyncio.sleep(0.1)
        return {'taken': True} if username in TAKEN_USERNAMES else None
    return lookup()


def passwords_match(group):
    value = group.value
    if value.get('password') != value.get('confirm'):
        return {'mismatch': True}
    return None


def text_event(value):
    return SimpleNamespace(target=SimpleNamespace(type='text', value=value))


async def main():
    form = FormGroup({
        'username': FormControl('', Validators.required, username_available),
        'credentials': FormGroup({
            'password': FormControl('', [Validators.required, Validators.min_length(8)]),
            'confirm': FormControl(''),
        }, passwords_match),
        'newsletter': FormControl(False),
    })

    form.view_refresh.subscribe(lambda: logger.info(f"render: status={form.status} value={form.value}"))
    form.get('username').status_changes.subscribe(lambda s: logger.info(f"username status -> {s}"))

    form.get('username').on_change(text_event('admin'))
    await asyncio.sleep(0.2)
    logger.info(f"username errors: {form.get('username').errors}")

    form.get('username').on_change(text_event('ada'))
    form.get('credentials.password').on_change(text_event('correct horse'))
    form.get('credentials.confirm').on_change(text_event('correct horse'))
    form.get('credentials.confirm').on_blur()
    await asyncio.sleep(0.2)

    logger.info(f"valid={form.valid} dirty={form.dirty} touched={form.touched}")
    logger.info(f"submitted value: {form.value}")


if __name__ == "__main__":
    asyncio.run(main())
