from behave import given, then, when
from behave.runner import Context

from bddbridge.scheduler import step_options


@given('the page "{name}" is open')
def step_open_page(context: Context, name: str):
    """
    Given step opening a page in the browser session.
    """
    context.browser.open(name)


@when('I click "{element}" until it responds')
@step_options(retry=2)
def step_click(context: Context, element: str):
    """
    When step clicking an element that only responds after a few tries.
    The browser session decides how many clicks fail; the step is retried twice.
    """
    context.browser.click(element)


@when('I open "{name}" asynchronously')
async def step_open_page_async(context: Context, name: str):
    """
    When step awaiting an asynchronous browser command.
    """
    await context.browser.open_async(name)


@then('the title is "{title}"')
def step_check_title(context: Context, title: str):
    """
    Then step verifying the title of the open page.
    """
    actual_title = context.browser.title()

    assert actual_title == title, f"Title mismatch. Expected: {title!r}, Actual: {actual_title!r}"
