"""
Trendline Candidate Module
Two-point trend lines built from pivot lists, with slope and projection helpers
"""

import pandas as pd

SECONDS_PER_HOUR = 3600.0


def hours_between(start, end):
    """Signed elapsed hours from `start` to `end` (fractional)"""
    return (pd.Timestamp(end) - pd.Timestamp(start)).total_seconds() / SECONDS_PER_HOUR


def make_line(first, second):
    """Trend line through two pivots of the same type"""
    return [first, second]


def line_duration_hours(line):
    return hours_between(line[0]['date'], line[1]['date'])


def calculate_line_slope(line):
    """
    Price change per hour between the two points of a line.

    Returns None for a degenerate line whose points do not move forward in
    time, so callers never see an infinite or NaN slope.
    """
    hours = line_duration_hours(line)
    if hours <= 0:
        return None
    return (line[1]['price'] - line[0]['price']) / hours


def project_line(line, when):
    """Price of the line extended to timestamp `when`"""
    slope = calculate_line_slope(line)
    if slope is None:
        return None
    return line[0]['price'] + slope * hours_between(line[0]['date'], when)


def generate_candidate_lines(pivots):
    """
    Yield every two-point line from a pivot list in ascending (i, j) order.

    The pivots are expected sorted by date, so the first point of each line
    is never later than the second.
    """
    for i in range(len(pivots) - 1):
        for j in range(i + 1, len(pivots)):
            yield make_line(pivots[i], pivots[j])


def count_candidate_lines(pivots):
    n = len(pivots)
    return n * (n - 1) // 2
