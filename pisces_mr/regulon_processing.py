"""Convert an ARACNe network into viper regulon objects.

The viper R package turns a three-column ARACNe edge list (regulator,
target, mutual information) plus the expression matrix it was inferred from
into a regulon object, then prunes each regulon to its 50 strongest
targets. This module is the Python interface: it invokes
r/process_aracne.R as a subprocess and reports where the two serialized
regulons were written.

Output naming is plain string concatenation, with no separator inserted:
  <out_dir><out_name>unPruned.rds
  <out_dir><out_name>pruned.rds

Usage:
    python -m pisces_mr.regulon_processing \\
        --network-file results/aracne/network.tsv \\
        --expression-file data/expression.tsv \\
        --out-dir results/regulons/ --out-name tf_
"""

import argparse
import logging
import subprocess
from pathlib import Path

from .utils.io import load_config

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)

# Path to the R script, relative to the package root
_DEFAULT_R_SCRIPT = Path(__file__).parent.parent / "r" / "process_aracne.R"


def regulon_paths(out_dir: str, out_name: str) -> tuple[str, str]:
    """Return the (unpruned, pruned) regulon file paths.

    Args:
        out_dir: Output directory prefix (include a trailing separator).
        out_name: File name prefix.

    Returns:
        Tuple of ('<out_dir><out_name>unPruned.rds', '<out_dir><out_name>pruned.rds').
    """
    prefix = f"{out_dir}{out_name}"
    return f"{prefix}unPruned.rds", f"{prefix}pruned.rds"


def process_aracne(
    network_file: str | Path,
    expression_file: str | Path,
    out_dir: str,
    out_name: str,
    max_targets: int = 50,
    rscript_path: str = "Rscript",
    r_script: str | Path = _DEFAULT_R_SCRIPT,
    timeout: int = 3600,
) -> tuple[str, str]:
    """Build and prune a viper regulon from an ARACNe network.

    Pruning keeps the `max_targets` strongest targets per regulator
    (non-adaptive) and drops regulators left without targets.

    Args:
        network_file: Three-column ARACNe network (regulator, target, MI).
        expression_file: Expression matrix (genes × samples) used by ARACNe.
        out_dir: Output directory prefix.
        out_name: Output file name prefix.
        max_targets: Pruning cutoff per regulator.
        rscript_path: Path to the Rscript binary.
        r_script: Path to process_aracne.R.
        timeout: Maximum run time in seconds.

    Returns:
        Tuple of (unpruned_path, pruned_path).

    Raises:
        FileNotFoundError: If an input file does not exist.
        RuntimeError: If the R script times out or exits with a nonzero code.
    """
    for path in (network_file, expression_file):
        if not Path(path).exists():
            raise FileNotFoundError(f"Input file not found: {path}")

    unpruned, pruned = regulon_paths(out_dir, out_name)
    cmd = [
        str(rscript_path),
        str(r_script),
        "--network-file",    str(network_file),
        "--expression-file", str(expression_file),
        "--unpruned-file",   unpruned,
        "--pruned-file",     pruned,
        "--max-targets",     str(max_targets),
    ]
    log.info("Launching R: %s", " ".join(cmd))

    proc = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        raise RuntimeError(f"process_aracne.R timed out after {timeout}s.")

    if proc.returncode != 0:
        log.error("R stderr:\n%s", stderr)
        raise RuntimeError(
            f"process_aracne.R exited with code {proc.returncode}. "
            "See stderr above for details."
        )
    log.info("Regulons saved: %s, %s", unpruned, pruned)
    return unpruned, pruned


# ── CLI ───────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Convert an ARACNe network into unpruned and pruned viper regulons."
    )
    parser.add_argument("--config", help="Path to YAML config file.")
    parser.add_argument("--network-file", required=True, help="ARACNe network (regulator, target, MI).")
    parser.add_argument("--expression-file", required=True, help="Expression matrix used by ARACNe.")
    parser.add_argument("--out-dir", required=True, help="Output prefix directory (with trailing '/').")
    parser.add_argument("--out-name", default="", help="Output file name prefix.")
    parser.add_argument("--max-targets", type=int, default=50)
    parser.add_argument("--rscript", default="Rscript", help="Path to the Rscript binary.")
    args = parser.parse_args()

    cfg = load_config(args.config) if args.config else {}
    rp_cfg = cfg.get("regulon_processing", {})

    process_aracne(
        network_file=args.network_file,
        expression_file=args.expression_file,
        out_dir=args.out_dir,
        out_name=args.out_name,
        max_targets=rp_cfg.get("max_targets", args.max_targets),
        rscript_path=rp_cfg.get("rscript_path", args.rscript),
        timeout=rp_cfg.get("timeout", 3600),
    )


if __name__ == "__main__":
    main()
