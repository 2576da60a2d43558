"""Data models for the MOTU datastore."""

from pymotu.models._base import MotuBaseModel, MotuMutableModel
from pymotu.models.bank import (
    Bank,
    BankAttribute,
    BankDirection,
    BankKey,
    Channel,
    ChannelAttribute,
    Trim,
    TrimKind,
    parse_bank_path,
)
from pymotu.models.request import Request, join_requests
from pymotu.models.value import BoolValue, EnumValue, FloatValue, IntValue, PairValue, StringValue, Value

__all__ = [
    "Bank",
    "BankAttribute",
    "BankDirection",
    "BankKey",
    "BoolValue",
    "Channel",
    "ChannelAttribute",
    "EnumValue",
    "FloatValue",
    "IntValue",
    "MotuBaseModel",
    "MotuMutableModel",
    "PairValue",
    "Request",
    "StringValue",
    "Trim",
    "TrimKind",
    "Value",
    "join_requests",
    "parse_bank_path",
]
