"""Main entry point - runs one cross-chain swap session."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from xchainswap.config import SessionConfig, load_session_config
from xchainswap.errors import ConfigError, FinalityTimeout, SwapError
from xchainswap.swap.executor import SwapExecutor, SwapSession
from xchainswap.utils.amounts import to_readable_amount

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SWAP_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


def configure_logging(config: Optional[SessionConfig] = None) -> None:
    """Configure root logging once for the process."""
    if config is None:
        level = logging.INFO
    elif config.debug:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(config.log_level)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )


def print_report(session: SwapSession) -> None:
    """Print a human-readable session summary."""
    data = session.to_dict()
    print("=" * 60)
    print("SWAP REPORT")
    print("=" * 60)
    print(f"State:        {data['state'].upper()}")
    print(f"Wallet:       {data['wallet']}")
    print(f"Swap:         {data['amount']} {data['source']} -> {data['destination']}")
    if "min_amount_out" in data:
        print(f"Min out:      {data['min_amount_out']} {session.destination_token.symbol}")
    for label, key in (
        ("Approval tx", "approval_tx"),
        ("Swap tx", "swap_tx"),
        ("Dest tx", "destination_tx"),
    ):
        if data[key]:
            print(f"{label + ':':<14}{data[key]}")

    src, dst = session.source_token, session.destination_token
    before, after = session.balances_before, session.balances_after
    if before is not None:
        print(f"{src.symbol} before: {to_readable_amount(before.source, src.decimals)}")
        print(f"{dst.symbol} before: {to_readable_amount(before.destination, dst.decimals)}")
    if after is not None:
        print(
            f"{src.symbol} after:  {to_readable_amount(after.source, src.decimals)} "
            f"({data.get('source_delta', 'n/a')})"
        )
        print(
            f"{dst.symbol} after:  {to_readable_amount(after.destination, dst.decimals)} "
            f"({data.get('destination_delta', 'n/a')})"
        )
    if data["error"]:
        print(f"Error:        {data['error']}")
    print("=" * 60)


class Application:
    """Runs one swap session with an external deadline and signal handling."""

    def __init__(
        self,
        config: SessionConfig,
        quote_only: bool = False,
        executor: Optional[SwapExecutor] = None,
    ):
        self.config = config
        self.quote_only = quote_only
        self.executor = executor or SwapExecutor(config)
        self.session: Optional[SwapSession] = None
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> int:
        """Run the session and return the process exit code."""
        logger.info("Starting xchainswap...")
        logger.info(f"Session: {self.config.get_safe_dict()}")

        try:
            self.session = self.executor.create_session()
        except ConfigError as e:
            logger.error(f"Configuration error: {e}")
            return EXIT_CONFIG_ERROR

        self._task = asyncio.create_task(
            self.executor.run(self.session, quote_only=self.quote_only)
        )

        try:
            await asyncio.wait_for(self._task, timeout=self.config.session_deadline_seconds)
            return EXIT_OK
        except asyncio.TimeoutError:
            logger.error(
                f"Session deadline of {self.config.session_deadline_seconds:.0f}s exceeded"
            )
            if self.session.swap_outcome:
                logger.error(
                    f"Swap tx {self.session.swap_outcome.tx_hash} may still be in transit, "
                    f"track it manually"
                )
            return EXIT_SWAP_ERROR
        except asyncio.CancelledError:
            logger.warning("Session cancelled")
            return EXIT_CANCELLED
        except FinalityTimeout as e:
            logger.error(f"Cross-chain completion not confirmed: {e}")
            return EXIT_SWAP_ERROR
        except SwapError as e:
            logger.error(f"Swap failed: {type(e).__name__}: {e}")
            return EXIT_SWAP_ERROR
        except Exception as e:
            logger.exception(f"Swap failed with an unexpected error: {type(e).__name__}: {e}")
            return EXIT_SWAP_ERROR
        finally:
            print_report(self.session)

    def shutdown(self) -> None:
        """Cancel the running session."""
        logger.info("Shutdown requested")
        if self._task is not None and not self._task.done():
            self._task.cancel()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cross-chain swap via Symbiosis")
    parser.add_argument("--env-file", type=str, default=".env", help="Path to .env file")
    parser.add_argument(
        "--quote-only",
        action="store_true",
        help="Request a route and exit without sending transactions",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_session_config(env_file=args.env_file)
    except ConfigError as e:
        configure_logging()
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    configure_logging(config)
    app = Application(config, quote_only=args.quote_only)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        return loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return EXIT_CANCELLED
    finally:
        loop.close()


if __name__ == "__main__":
    sys.exit(main())
