"""
Hooks defined in this module execute before and after specific events
during the bddbridge run. The run's own lifecycle hooks are called after these.

Official Behave documentation: https://behave.readthedocs.io/en/latest/api/#environment-file-functions
"""

from behave.model import Feature, Scenario, Step
from behave.runner import Context


def before_all(context: Context):
    """
    Setup executed once before any test execution begins.
    """
    context.browser.trail.append("environment:before_all")


def before_feature(context: Context, feature: Feature):
    """
    Executed before each feature.
    """


def before_scenario(context: Context, scenario: Scenario):
    """
    Executed before each scenario.
    """
    context.browser.trail.append(f"environment:{scenario.name}")


def before_step(context: Context, step: Step):
    """
    Executed before every step within a scenario.
    """


def after_step(context: Context, step: Step):
    """
    Executed after every step within a scenario.
    """


def after_scenario(context: Context, scenario: Scenario):
    """
    Executed after each scenario.
    """


def after_feature(context: Context, feature: Feature):
    """
    Executed after each feature.
    """


def after_all(context: Context):
    """
    Teardown executed once after all test execution has finished.
    """
