import datetime

from jinja2.sandbox import SandboxedEnvironment


def month_name(date: datetime.date) -> str:
    return date.strftime("%B")


def make_environment():
    env = SandboxedEnvironment()
    env.filters["month_name"] = month_name
    return env
