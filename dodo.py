# -*- coding: utf-8 -*-
# pydoit task file, see https://pydoit.org/
# `doit list` shows the tasks; `doit test_logic --help` shows the test filters.

from doit.action import CmdAction

TEST_HELP = """echo '
{title} tests
-------------
  -k TEXT   pytest keyword expression, e.g. -k "downloader and not retry"
  -s TEXT   speed filter: slow | fast | all
  -r        rerun only the tests that failed last time
  -p        print logs instead of capturing them
  -f        full tracebacks
  -t        report test durations

  doit {task} -k catalog -p
  '"""

TEST_PARAMS = [
    {"name": "help", "long": "help", "default": False, "type": bool},
    {"name": "keyword", "short": "k", "default": ""},
    {"name": "speed", "short": "s", "default": ""},
    {"name": "retry", "short": "r", "default": False, "type": bool},
    {"name": "print_logs", "short": "p", "default": False, "type": bool},
    {"name": "full_trace", "short": "f", "default": False, "type": bool},
    {"name": "show_time", "short": "t", "default": False, "type": bool},
]

SPEED_MARKERS = {"": None, "all": None, "slow": "slow", "fast": '"not slow"'}


def _build_pytest_command(test_dir, keyword, speed, **flags):
    """Assemble the pytest command line for one of the test tasks."""
    if speed not in SPEED_MARKERS:
        raise ValueError(f"Unknown speed filter '{speed}' (slow, fast or all)")
    switches = {
        "--capture=no": flags.get("print_logs"),
        "--full-trace": flags.get("full_trace"),
        "--durations=0": flags.get("show_time"),
        "--lf": flags.get("retry"),
    }
    cmd = ["pytest", "--color=yes", "-vv", "-x"]
    cmd += [switch for switch, enabled in switches.items() if enabled]
    if keyword:
        cmd += ["-k", f'"{keyword}"']
    if SPEED_MARKERS[speed]:
        cmd += ["-m", SPEED_MARKERS[speed]]
    cmd.append(test_dir)
    return " ".join(cmd)


def _test_task(test_dir, title, task):
    def action(keyword, speed, retry, print_logs, full_trace, show_time, help=False):
        if help:
            return TEST_HELP.format(title=title, task=task)
        try:
            return _build_pytest_command(
                test_dir,
                keyword,
                speed,
                retry=retry,
                print_logs=print_logs,
                full_trace=full_trace,
                show_time=show_time,
            )
        except ValueError as e:
            return f"echo '{e}' && exit 1"

    return {"actions": [CmdAction(action)], "params": TEST_PARAMS, "verbosity": 2}


def task_install():
    """Editable install of ut181a with the dev extras"""
    return {"actions": ["pip install -e .[dev]"], "verbosity": 2}


def task_test_logic():
    """Tests in test/logic/, run against the simulated meter"""
    return _test_task("test/logic/", "Logic", "test_logic")


def task_test_hardware():
    """Tests in test/hardware/, need a UT181A on USB"""
    return _test_task("test/hardware/", "Hardware", "test_hardware")


def task_demo():
    """List the simulated meter's records through the CLI"""
    return {"actions": ["ut181a --mock --no-log-to-file list"], "verbosity": 2}


def task_format():
    """ruff import sorting and formatting"""
    paths = "src/ut181a test/ dodo.py"
    return {
        "actions": [f"ruff check --select I --fix {paths}", f"ruff format {paths}"],
        "verbosity": 2,
    }
