"""
Benchmark harness for the disaggregation strategies.

Measures how many bundle expansions each strategy performs per second and
cross-checks that all of them agree before any timing starts.

Per strategy, in fixed order (External-line-split, External-fixed-width,
In-process):
1. verification: a random bundle drawn from the alphabet is expanded and
   compared with an independently built expected list; a mismatch aborts the
   whole run with exit status 1.
2. calibration: the strategy splices a fixed synthetic argument list over and
   over until at least `duration` seconds (3.0 by default) have elapsed. Time
   is sampled with time.perf_counter() right before the loop and after every
   iteration, so slow and fast strategies get comparable statistics.
3. report: iteration count, elapsed seconds and iterations per second.

Run it with `python -m getoptic` or the `getoptic-benchmark` script.
"""
import logging
import random
import time
from dataclasses import dataclass

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import faults
from .disaggregation import STRATEGIES, disaggregate, resolve, splice
from .faults import ExitCode, GeneralFailure, fail
from .options import OptionTable, flag, terminal, valued
from .parser import Parser
from .utils import Unset, coalesce

log = logging.getLogger(__name__)

console = Console()

DURATION = 3.0
ALPHABET = "amLpvqVh"
LENGTH = 8
CALIBRATION = ("-vqLa", "file1.txt", "file2.txt", "--", "-literal")


class VerificationError(GeneralFailure):
    __title__ = "verification failed"


@dataclass(frozen=True)
class BenchmarkResult:
    strategy_name: str
    iterations: int
    elapsed_seconds: float
    iterations_per_second: float
    verified: bool


def bundle(rng, alphabet=ALPHABET, length=LENGTH):
    """a random bundle token of `length` members drawn from alphabet."""
    return "-" + "".join(rng.choices(sorted(set(alphabet)), k=length))


def verify(strategy, token, alphabet=ALPHABET):
    """True when strategy expands token exactly as '-' + each member, in order."""
    expected = []
    for char in token[1:]:
        expected.append("-" + char)
    actual = disaggregate(token, frozenset(alphabet), strategy=strategy, external=True)
    log.debug("%s: %r → %r", resolve(strategy, external=True).name, token, actual)
    return actual == expected


def calibrate(strategy, tokens=CALIBRATION, alphabet=ALPHABET, duration=DURATION, clock=time.perf_counter):
    """
    splice tokens with strategy until duration seconds have elapsed.

    returns an unverified BenchmarkResult; run() marks verified results.
    """
    strategy = resolve(strategy, external=True)
    alphabet = frozenset(alphabet)
    tokens = list(tokens)

    iterations = 0
    start = clock()
    while True:
        splice(tokens, alphabet, strategy=strategy, external=True)
        iterations += 1
        elapsed = clock() - start
        if elapsed >= duration:
            break

    return BenchmarkResult(
        strategy_name=strategy.name,
        iterations=iterations,
        elapsed_seconds=elapsed,
        iterations_per_second=iterations / elapsed if elapsed > 0 else float("inf"),
        verified=False,
    )


def report(result, output=Unset):
    output = coalesce(output, console)
    output.print("Iterations: %d" % result.iterations, highlight=False)
    output.print("Elapsed time: %.3fs" % result.elapsed_seconds, highlight=False)
    output.print("Iterations/sec: %.2f" % result.iterations_per_second, highlight=False)


def summarize(results, output=Unset):
    """rank results by throughput, relative to the slowest strategy."""
    output = coalesce(output, console)
    if not results:
        return
    slowest = min(result.iterations_per_second for result in results)

    table = Table(title="disaggregation throughput")
    table.add_column("strategy")
    table.add_column("iterations", justify="right")
    table.add_column("elapsed", justify="right")
    table.add_column("iterations/sec", justify="right")
    table.add_column("relative", justify="right")

    for result in sorted(results, key=lambda result: result.iterations_per_second, reverse=True):
        table.add_row(
            result.strategy_name,
            str(result.iterations),
            "%.3fs" % result.elapsed_seconds,
            "%.2f" % result.iterations_per_second,
            "×%.2f" % (result.iterations_per_second / slowest if slowest else 1.0),
        )
    output.print(table)


def run(
        strategies=STRATEGIES,
        *,
        duration=DURATION,
        seed=None,
        length=LENGTH,
        alphabet=ALPHABET,
        calibration=CALIBRATION,
        output=Unset,
):
    """
    verify, calibrate and report every strategy, strictly one after another.

    raises VerificationError on the first strategy whose output disagrees, and
    GeneralFailure when an external tool cannot be run.
    """
    output = coalesce(output, console)
    rng = random.Random(seed)
    token = bundle(rng, alphabet, length)
    log.info("verification bundle %r (seed %r)", token, seed)

    results = []
    for strategy in strategies:
        strategy = resolve(strategy, external=True)
        if not verify(strategy, token, alphabet):
            raise VerificationError("%s output mismatch for %r" % (strategy.name, token), token=token)
        output.print("✓ %s output verified" % strategy.name, highlight=False)

        result = calibrate(strategy, calibration, alphabet, duration)
        results.append(BenchmarkResult(
            strategy_name=result.strategy_name,
            iterations=result.iterations,
            elapsed_seconds=result.elapsed_seconds,
            iterations_per_second=result.iterations_per_second,
            verified=True,
        ))
        report(result, output)
        output.print()
    return results


USAGE = """\
Usage: getoptic-benchmark [OPTIONS]

Benchmark the bundled short-option disaggregation strategies.

Options:
  -d, --duration SECONDS  minimum wall-clock time per strategy (default: 3.0)
  -s, --seed N            seed for the verification bundle (default: random)
  -l, --length N          members in the verification bundle (default: 8)
  -v, --verbose           show debug logging of the run (the parsing of these
                          options happens before -v takes effect and is not traced)
  -q, --quiet             only log errors
  -h, --help              show this help and exit
  -V, --version           show the version and exit
"""


def _version():
    from . import __version__
    console.print("getoptic-benchmark %s" % __version__, highlight=False)


TABLE = OptionTable([
    valued("-d", "--duration", metavar="SECONDS", default=str(DURATION)),
    valued("-s", "--seed", metavar="N"),
    valued("-l", "--length", metavar="N", default=str(LENGTH)),
    flag("-v", "--verbose"),
    flag("-q", "--quiet", dest="verbose", const=False),
    terminal("-h", "--help", action=lambda: console.print(USAGE, highlight=False, markup=False)),
    terminal("-V", "--version", action=_version),
])


def _number(type, value, name, minimum):
    try:
        number = type(value)
    except ValueError:
        fail(ExitCode.INVALID, "invalid %s %r" % (name, value), prog="getoptic-benchmark")
    if not number >= minimum:
        fail(ExitCode.INVALID, "invalid %s %r (must be at least %s)" % (name, value, minimum), prog="getoptic-benchmark")
    return number


def main(argv=Unset, /):
    """entry point of the benchmark CLI; returns the process exit status."""
    # the handler is in place before parsing; the level is only known after it
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=faults.console, show_path=False)],
    )
    parser = Parser(TABLE, nargs=0, prog="getoptic-benchmark")
    options = parser.invoke(argv)

    verbose = options.get("verbose")
    logging.getLogger().setLevel(
        logging.DEBUG if verbose else logging.ERROR if verbose is False else logging.WARNING
    )

    duration = _number(float, options["duration"], "duration", 0)
    length = _number(int, options["length"], "length", 1)
    seed = options.get("seed")
    seed = _number(int, seed, "seed", 0) if seed is not None else None

    try:
        results = run(STRATEGIES, duration=duration, seed=seed, length=length)
    except GeneralFailure as error:
        # VerificationError included: one mismatch or missing tool aborts the run
        faults.console.print("✗ %s" % error.message, highlight=False)
        return int(error.code)

    summarize(results)
    return int(ExitCode.SUCCESS)


__all__ = (
    "BenchmarkResult",
    "VerificationError",
    "bundle",
    "verify",
    "calibrate",
    "report",
    "summarize",
    "run",
    "main",
)
