"""Submission of signed transactions."""

from .client import SUBMIT_TX, TxSubmissionClient, create_tx_submission_client

__all__ = ["SUBMIT_TX", "TxSubmissionClient", "create_tx_submission_client"]
