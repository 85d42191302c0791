# app/constants/grn.py

from enum import Enum

GRN_NUMBER_PREFIX = "GRN"
GRN_NUMBER_WIDTH = 5


class GRNStatus(str, Enum):
    # receipts are financial records: created complete, never drafted or edited
    COMPLETED = "completed"
