"""
Console progress reporting for metric runs.

A banner for the batch, one line per metric result, a progress bar over
the batch and a per-category summary at the end. ``quiet`` silences
everything but errors; failed metrics are always listed otherwise, and
successful ones only when ``verbose``.
"""

import sys
from typing import Dict, List, Optional

from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

colorama_init(autoreset=True)

UNCATEGORIZED = "uncategorized"


class ProgressReporter:
    """
    Interactive progress reporting
    - Color-coded output (colorama)
    - Progress bar with ETA (tqdm)
    """

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        """Apply color if enabled"""
        if self.use_colors:
            return f"{color}{text}{Style.RESET_ALL}"
        return text

    def _separator(self) -> str:
        return self._colorize("=" * 70, Fore.CYAN)

    def batch_start(self, repository: str, window, count: int):
        """Banner naming the repository, window and batch size"""
        if self.quiet:
            return
        title = self._colorize(
            f"🔄 Computing {count} metrics for {repository}", Fore.BLUE + Style.BRIGHT
        )
        print(f"\n{self._separator()}")
        print(title)
        print(f"   Window: {window}")
        print(self._separator())

    def create_progress_bar(
        self, total: int, desc: str = "Computing", unit: str = " metrics"
    ) -> Optional[tqdm]:
        """Progress bar with ETA, None when quiet"""
        if self.quiet:
            return None

        return tqdm(
            total=total,
            desc=self._colorize(desc, Fore.CYAN),
            unit=unit,
            ncols=100,
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
        )

    def format_result(self, result) -> str:
        """
        One line for a MetricResult: status, name, category, outcome and
        timing. Failures show the error class in place of the value.
        """
        category = result.category or UNCATEGORIZED
        elapsed = result.metadata.get("execution_time", 0.0)
        if result.failed:
            error_class = result.metadata.get("error_class", "Error")
            text = f"❌ {result.name} [{category}] {error_class}: {result.error}"
            color = Fore.RED
        else:
            text = f"✅ {result.name} [{category}] {result.value.describe()}"
            color = Fore.GREEN
        return self._colorize(f"{text} ({elapsed:.3f}s)", color)

    def metric_result(self, result):
        """Report a finished metric; successes only when verbose"""
        if self.quiet or (result.success and not self.verbose):
            return
        # tqdm.write keeps an active progress bar intact
        tqdm.write(self.format_result(result))

    def error(self, message: str):
        """Display error message (always shown)"""
        error_text = self._colorize(f"❌ ERROR: {message}", Fore.RED + Style.BRIGHT)
        print(error_text, file=sys.stderr)

    @staticmethod
    def category_counts(results) -> Dict[str, List[int]]:
        """category -> [succeeded, total], in first-seen order"""
        counts: Dict[str, List[int]] = {}
        for result in results:
            tally = counts.setdefault(result.category or UNCATEGORIZED, [0, 0])
            tally[1] += 1
            if result.success:
                tally[0] += 1
        return counts

    def batch_complete(self, report):
        """Per-category tallies and totals for a RunReport"""
        if report.failed:
            self.error(f"{report.failed} of {len(report)} metrics failed")
        if self.quiet:
            return

        header = self._colorize("📊 METRICS SUMMARY", Fore.MAGENTA + Style.BRIGHT)
        print(f"\n{self._separator()}")
        print(header)
        print(self._separator())
        for category, (succeeded, total) in self.category_counts(report).items():
            print(f"   {category}: {succeeded}/{total}")

        if not report.failed:
            print(
                self._colorize(
                    f"✨ All {len(report)} metrics computed", Fore.GREEN + Style.BRIGHT
                )
            )
        time_text = self._colorize(
            f"⏱️  Total time: {report.execution_time:.2f}s", Fore.YELLOW
        )
        print(f"\n{time_text}")
        print(f"{self._separator()}\n")
