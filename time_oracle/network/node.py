"""
Oracle Node Module

This module exposes a time oracle over HTTP. The node is only a
driver: each POST hands one raw payload to the oracle and returns
whatever single response it produces.
"""

import time
import uuid
import threading
from typing import Callable, Dict, List, Optional
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from pydantic import BaseModel
from ..oracle.kernel import TimeOracle
from ..sources.collector import TimeSourceCollector

# API Models
class NodeInfo(BaseModel):
    node_id: str
    address: str
    port: int
    processed_requests: int
    dropped_payloads: int
    rollup_level: int
    timestamp: float

class SourceList(BaseModel):
    sources: List[str]

class OracleNode:
    """
    HTTP front end for a TimeOracle, accepting raw request payloads
    and answering with encoded time responses.
    """

    def __init__(self, oracle: TimeOracle = None, node_id: str = None,
               host: str = "localhost", port: int = 8000,
               collector: Optional[TimeSourceCollector] = None,
               diagnostics: Callable[[str], None] = print):
        self.node_id = node_id or str(uuid.uuid4())
        self.host = host
        self.port = port
        self.address = f"http://{host}:{port}"
        self.diagnostics = diagnostics

        self.oracle = oracle or TimeOracle(diagnostics=diagnostics)
        self.collector = collector or TimeSourceCollector(diagnostics=diagnostics)

        # Initialize API application
        self.app = FastAPI(title=f"Time Oracle Node {self.node_id[:8]}")
        self._setup_api_routes()

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Server control
        self._server_thread = None
        self._server: Optional[uvicorn.Server] = None
        self._running = False

    def _setup_api_routes(self):
        """Configure API endpoints"""

        @self.app.get("/")
        def root():
            return {
                "node": self.node_id,
                "processed_requests": self.oracle.processed_requests
            }

        @self.app.get("/node/info", response_model=NodeInfo)
        def get_node_info():
            return self.node_info()

        @self.app.get("/sources", response_model=SourceList)
        def get_sources():
            return SourceList(sources=[source.name for source in self.collector.sources])

        @self.app.post("/time/verify")
        async def verify_time(request: Request):
            payload = await request.body()
            encoded = self.oracle.process(payload)

            # Dropped payloads get no body
            if encoded is None:
                return Response(status_code=204)

            return Response(content=encoded, media_type="application/json")

    def node_info(self) -> NodeInfo:
        return NodeInfo(
            node_id=self.node_id,
            address=self.address,
            port=self.port,
            processed_requests=self.oracle.processed_requests,
            dropped_payloads=self.oracle.dropped_payloads,
            rollup_level=self.oracle.rollup_level(),
            timestamp=time.time()
        )

    def start(self):
        """Start the node server"""
        if self._running:
            return

        self._running = True
        config = uvicorn.Config(self.app, host=self.host, port=self.port)
        self._server = uvicorn.Server(config)

        # Start server in a separate thread
        self._server_thread = threading.Thread(target=self._server.run)
        self._server_thread.daemon = True
        self._server_thread.start()

        self.diagnostics(f"Node {self.node_id[:8]} started at {self.address}")

    def stop(self):
        """Stop the node server"""
        if not self._running:
            return

        self._running = False
        if self._server:
            self._server.should_exit = True
        if self._server_thread:
            self._server_thread.join(timeout=2.0)
            self._server_thread = None

        self.diagnostics(f"Node {self.node_id[:8]} stopped")

    def stats(self) -> Dict:
        return self.node_info().model_dump()
