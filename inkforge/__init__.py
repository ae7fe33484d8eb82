"""Tooling for ink! smart contract projects built with cargo: options, manifests,
workspaces, crate metadata, Wasm import validation and project scaffolding."""

__version__ = "0.1.0"