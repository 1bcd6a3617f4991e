from .edge import CONTINUE, Continue, EdgeMiddleware, Terminal, edge_stage, run_stage

__all__ = ["CONTINUE", "Continue", "EdgeMiddleware", "Terminal", "edge_stage", "run_stage"]
