"""
Command line interface for the quadratic sieve.

You can interact with the sieve...
- in Python
>  from qsfactor.quadratic_sieve import factor, get_divisor
- in command line
>  python run.py -h
>  qsfactor -h
- in a Python REPL
>  python run.py repl
"""

import argparse
import sys

from qsfactor.config import QSConfig, configure_logging
from qsfactor.errors import ArithmeticInvariantViolation, NoDivisorFound
from qsfactor.quadratic_sieve import factor, get_divisor
from qsfactor.sieve import SIEVES


def get_composite(bits: int, quiet: bool = False) -> int:
    """Random semiprime p * q with p and q of about bits/2 bits each."""
    from Crypto.Util import number

    _validate_bits(bits)

    p = number.getPrime(bits // 2)
    q = number.getPrime(bits // 2 + (1 if bits % 2 else 0))
    n = p * q
    if not quiet:
        print(f"Generated {bits}-bit / {len(str(n))}-digit composite\n| {n} = \n| {p} \n|  * \n| {q}")
    return n


def read_n_from_pubkey(filename: str) -> int:
    """Modulus of a PEM-encoded RSA public key."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    with open(filename, "rb") as f:
        pubkey = serialization.load_pem_public_key(f.read())
    if not isinstance(pubkey, rsa.RSAPublicKey):
        raise ValueError("No RSA public key found in the file.")
    return pubkey.public_numbers().n


def _validate_bits(bits: int):
    if 6 < bits < 150:
        pass  # reasonable
    elif 150 <= bits <= 4096:
        print(f"Warning! {bits} bits are a lot. This computation may never complete!", file=sys.stderr)
    else:
        raise ValueError("--bits must be at least 7, and not too large.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qsfactor", description="Integer factorization with the quadratic sieve.")
    parser.add_argument("mode", nargs="?", default="factor", choices=["factor", "divisor", "gen_composite", "list_sieves", "repl"],
                        help="'factor' to factor a number completely, 'divisor' to find one nontrivial divisor, "
                             "'gen_composite' to generate a composite number N = p*q, 'list_sieves' to list sieve strategies, "
                             "or 'repl' to start a Python REPL.")
    parser.add_argument("-n", "-N", "--number", type=int, default=None,
                        help="Number to factor.")
    parser.add_argument("-b", "--bits", type=int, default=None,
                        help="Number of bits of a random composite to generate and factor.")
    parser.add_argument("--pubkey", type=str, default=None,
                        help="Path to a PEM-formatted RSA public key whose modulus is factored.")
    parser.add_argument("-T", "--threads", type=int, default=0,
                        help="Number of sieve threads (0: auto).")
    parser.add_argument("-F", "--factor-base-size", type=int, default=0,
                        help="Number of factor base primes (0: auto).")
    parser.add_argument("-L", "--lower-bound-percent", type=int, default=85,
                        help="Sieve acceptance threshold, in percent of log|x^2 - n|.")
    parser.add_argument("-S", "--sieve", type=str, default="quadratic_residue", choices=list(SIEVES),
                        help="Sieve strategy.")
    parser.add_argument("-R", "--retries", type=int, default=2,
                        help="Number of retries with a larger factor base on failure.")
    parser.add_argument("-RF", "--retry-factor", type=float, default=1.2,
                        help="Factor to enlarge the factor base by on each retry.")
    parser.add_argument("-P", "--progress", action="store_true",
                        help="Show progress bars.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log parameters and results.")
    parser.add_argument("-vv", "--very-verbose", action="store_true",
                        help="Also log timing and matrix details.")
    return parser


def _read_number(args) -> int | None:
    given = [args.number is not None, args.bits is not None, args.pubkey is not None]
    if sum(given) > 1:
        print("Error: --number, --bits and --pubkey are mutually exclusive.", file=sys.stderr)
        sys.exit(1)
    if args.number is not None:
        return args.number
    if args.bits is not None:
        return get_composite(args.bits)
    if args.pubkey is not None:
        return read_n_from_pubkey(args.pubkey)
    return None


def main(argv: list[str] | None = None):
    args = _build_parser().parse_args(argv)

    verbosity = 2 if args.very_verbose else (1 if args.verbose else 0)
    configure_logging(verbosity)

    if args.mode == "list_sieves":
        print("Available sieve strategies:")
        for name, function in SIEVES.items():
            print(f" - {name}: {function.__doc__.strip().splitlines()[0]}")
        return

    if args.mode == "gen_composite":
        if args.bits is None:
            print("Error: pass --bits to use this mode!", file=sys.stderr)
            sys.exit(1)
        try:
            get_composite(args.bits)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        return

    if args.mode == "repl":
        import code
        print("Entering REPL mode. factor, get_divisor, get_composite and QSConfig are available.")
        code.interact(local={"factor": factor, "get_divisor": get_divisor, "get_composite": get_composite, "QSConfig": QSConfig})
        return

    try:
        n = _read_number(args)
        if n is None:
            print("Error: One of --number, --bits or --pubkey must be specified.", file=sys.stderr)
            sys.exit(1)
        config = QSConfig(
            threads=args.threads,
            factor_base_size=args.factor_base_size,
            lower_bound_percent=args.lower_bound_percent,
            sieve=args.sieve,
            retries=args.retries,
            retry_factor=args.retry_factor,
            progress=args.progress,
        )
        from tqdm.contrib.logging import logging_redirect_tqdm
        with logging_redirect_tqdm():
            if args.mode == "divisor":
                divisor = get_divisor(n, config)
                if divisor is None:
                    print("none found")
                    sys.exit(1)
                print(divisor)
            else:
                factors = factor(n, config)
                print(f"{n} = {' * '.join(str(p) for p in factors)}")
    except NoDivisorFound as e:
        print(f"Factorization failed! {e}", file=sys.stderr)
        sys.exit(1)
    except ArithmeticInvariantViolation as e:
        print(f"Internal error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
