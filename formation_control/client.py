#!/usr/bin/env python3
"""
WebSocket Client for a Formation Control Agent

This module connects one agent to a message relay over WebSocket. Neighbor
and target statistics arrive asynchronously and are routed to the AgentCore;
a periodic timer runs the control pipeline every sample period and publishes
the estimated statistics and an agent report after every cycle.
"""

import asyncio
import logging
import signal
import time
from typing import Any, Awaitable, Callable, Optional, Union

import websockets

from formation_control import messages
from formation_control.agent import AgentCore, EstimatedStatisticsEvent
from formation_control.config import (
    TERM_BLUE,
    TERM_RESET,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    AgentConfig,
)
from formation_control.data_collector import DataCollector
from formation_control.errors import MessageError


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            return record.getMessage()
        else:
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class PeriodicTimer:
    """Runs an async callback at a fixed period on absolute deadlines.

    Deadlines are computed from the loop clock, so the period does not drift
    with the callback duration. A callback that overruns its period is
    logged and the schedule skips ahead to the next future deadline.

    Attributes:
        period: Tick period (seconds).
        overruns: Number of ticks that finished after the next deadline.
    """

    def __init__(self, period: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.period = period
        self.callback = callback
        self.overruns: int = 0
        self.should_stop: bool = False

    async def run(self) -> None:
        """Tick until stop() is called."""
        loop = asyncio.get_running_loop()
        next_deadline = loop.time()
        while not self.should_stop:
            await self.callback()
            next_deadline += self.period
            now = loop.time()
            if now > next_deadline:
                self.overruns += 1
                logging.warning(
                    f"[PeriodicTimer] Cycle overran the {self.period:.3f}s period "
                    f"by {now - next_deadline:.3f}s"
                )
                while next_deadline < now:
                    next_deadline += self.period
            await asyncio.sleep(next_deadline - now)

    def stop(self) -> None:
        """Signal the timer to stop after the current tick."""
        self.should_stop = True


class AgentClient:
    """Formation control agent with WebSocket communication and data logging.

    This class manages the agent's runtime around the AgentCore:
    - WebSocket connection to the message relay
    - Routing of neighbor and target statistics to the core
    - Periodic execution of the control pipeline
    - Publication of estimated statistics and agent reports
    - Optional CSV data logging

    Attributes:
        config: Agent configuration (includes the relay URI).
        core: Control pipeline of this agent.
        data_collector: Optional CSV logger.
        should_stop: Flag indicating whether to stop the client.
    """

    def __init__(
        self,
        config: AgentConfig,
        output_dir: Optional[str] = None,
        core: Optional[AgentCore] = None,
    ) -> None:
        """Initialize the agent client.

        Args:
            config: Agent configuration; config.uri must start with ws:// or wss://.
            output_dir: If given, log every cycle to CSV files below this directory.
            core: Pre-built AgentCore (default: built from config).

        Raises:
            ValueError: If URI format is invalid.
        """
        if not config.uri or not config.uri.startswith(("ws://", "wss://")):
            raise ValueError(
                f"Invalid WebSocket URI: {config.uri}. Must start with 'ws://' or 'wss://'"
            )

        self.config = config
        self.uri: str = config.uri
        self.should_stop: bool = False
        self.core = core if core is not None else AgentCore(config)
        self.data_collector: Optional[DataCollector] = (
            DataCollector(output_dir=output_dir) if output_dir is not None else None
        )
        self.timer = PeriodicTimer(config.sample_time, self.tick)
        self.websocket: Any = None
        self.close_task: Optional["asyncio.Task[None]"] = None

    def parse_and_route_message(self, message: Union[str, bytes]) -> None:
        """Parse an incoming message and route it to the agent core.

        Malformed messages are logged and dropped.

        Args:
            message: Raw JSON message string or bytes from WebSocket.
        """
        try:
            data = messages.parse_message(message)
            message_type = data["message_type"]

            if message_type == messages.NEIGHBOR_STATISTICS:
                self.core.receive_neighbor_statistics(messages.decode_neighbor_statistics(data))
            elif message_type == messages.TARGET_STATISTICS:
                self.core.set_target_statistics(messages.decode_target_statistics(data))
            else:
                logging.debug(f"Received unhandled message type: {message_type}")

        except MessageError as e:
            logging.error(f"Error processing message: {e}")

    async def publish(self, event: EstimatedStatisticsEvent) -> None:
        """Send the estimate and the agent report over the open connection."""
        if self.websocket is None:
            return
        try:
            await self.websocket.send(messages.encode_estimated_statistics(event))
            await self.websocket.send(messages.encode_agent_report(self.core, event))
        except websockets.exceptions.ConnectionClosed:
            logging.warning("Connection closed while publishing statistics")
            self.websocket = None

    async def tick(self) -> None:
        """Run one control cycle and publish its results."""
        event = self.core.step(timestamp=time.time())
        await self.publish(event)
        if self.data_collector is not None:
            self.data_collector.log_cycle(event.timestamp, self.core)

    async def receive_loop(self, websocket: Any) -> None:
        """Route incoming messages until the connection closes."""
        async for message in websocket:
            self.parse_and_route_message(message)
            if self.should_stop:
                break

    async def run(self) -> None:
        """Run the control timer and keep the relay connection alive.

        The pipeline keeps running while disconnected; only publishing and
        ingestion pause. Reconnection uses exponential backoff.
        """
        timer_task = asyncio.create_task(self.timer.run())
        # A failing cycle (e.g. unsolvable control law) is fatal: stop and re-raise below
        timer_task.add_done_callback(
            lambda task: self.stop() if not task.cancelled() and task.exception() else None
        )
        retry_delay = WS_RETRY_DELAY_SECONDS

        try:
            while not self.should_stop:
                try:
                    async with websockets.connect(self.uri) as websocket:
                        logging.info(f"{TERM_BLUE}✓ Connected to {self.uri}{TERM_RESET}")
                        retry_delay = WS_RETRY_DELAY_SECONDS
                        self.websocket = websocket
                        await self.receive_loop(websocket)
                        if not self.should_stop:
                            logging.warning("Connection closed by server")
                except (OSError, websockets.exceptions.WebSocketException) as e:
                    if self.should_stop:
                        break
                    logging.error(f"Connection error: {e}")
                    logging.info(f"Retrying in {retry_delay} seconds...")
                    await asyncio.sleep(retry_delay)
                    retry_delay = min(retry_delay * 2, WS_MAX_RETRY_DELAY_SECONDS)
                finally:
                    self.websocket = None
        finally:
            self.timer.stop()
            if self.close_task is not None:
                await self.close_task
            await timer_task

    def stop(self) -> None:
        """Signal the client to stop and close the open connection."""
        self.should_stop = True
        self.timer.stop()
        if self.websocket is not None:
            self.close_task = asyncio.get_running_loop().create_task(self.websocket.close())

    def __enter__(self) -> "AgentClient":
        if self.data_collector is not None:
            self.data_collector.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.data_collector is not None:
            self.data_collector.cleanup()


async def main(config: AgentConfig, output_dir: Optional[str] = None) -> None:
    """Main entry point for the agent client.

    Creates an AgentClient, sets up signal handlers for graceful shutdown,
    and runs until a shutdown signal arrives.

    Args:
        config: Agent configuration.
        output_dir: Optional base directory for CSV logs.
    """
    with AgentClient(config, output_dir=output_dir) as client:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            client.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        logging.info(
            f"{TERM_BLUE}Agent {config.agent_id} running at {1.0 / config.sample_time:.1f} Hz "
            f"with neighbors {sorted(config.neighbors)}{TERM_RESET}"
        )
        await client.run()
