"""
Unit tests for the flow statistics calculations.
"""

import math

import pytest

from flowbench.simulation.calculations import (
    calculate_average_delay,
    calculate_average_jitter,
    calculate_bandwidth_utilization,
    calculate_flow_metrics,
    calculate_goodput_mbps,
    calculate_packet_delivery_ratio,
    calculate_packet_loss_ratio,
    calculate_throughput_mbps,
    estimate_retransmissions,
    jain_fairness_index,
)
from flowbench.simulation.metrics import FlowKey


class TestPerFlowMetrics:
    def test_healthy_flow(self, counters):
        metrics = calculate_flow_metrics(FlowKey("10.1.1.1", "10.1.1.2"), counters, 60.0)

        assert metrics.throughput_mbps == pytest.approx(1.064)
        assert metrics.goodput_mbps == pytest.approx(1.064)
        assert metrics.packet_loss_ratio == pytest.approx(5.0)
        assert metrics.packet_delivery_ratio == pytest.approx(95.0)
        assert metrics.average_delay_s == pytest.approx(0.01)
        assert metrics.average_jitter_s == pytest.approx(0.001)
        assert metrics.bandwidth_utilization == pytest.approx(1.064 / 60.0 * 100.0)
        assert metrics.retransmissions == 5
        assert metrics.source == "10.1.1.1"
        assert metrics.destination == "10.1.1.2"

    def test_one_second_flow(self, counters_factory):
        counters = counters_factory(
            rx_bytes=95 * 1400, time_first_tx=0.0, time_last_rx=1.0, jitter_sum=0.0094
        )
        metrics = calculate_flow_metrics(FlowKey("10.1.1.1", "10.1.1.2"), counters, 60.0)

        assert metrics.throughput_mbps == pytest.approx(1.064)
        assert metrics.packet_loss_ratio == pytest.approx(5.0)
        assert metrics.packet_delivery_ratio == pytest.approx(95.0)
        assert metrics.average_jitter_s == pytest.approx(0.0001)
        assert metrics.retransmissions == 5

    def test_delivery_and_loss_sum_to_hundred(self, counters_factory):
        for rx in (0, 1, 50, 99, 100):
            counters = counters_factory(rx_packets=rx)
            total = calculate_packet_loss_ratio(counters) + calculate_packet_delivery_ratio(
                counters
            )
            assert total == pytest.approx(100.0)

    def test_duplicates_never_give_negative_loss(self, counters_factory):
        counters = counters_factory(tx_packets=10, rx_packets=12)
        assert calculate_packet_loss_ratio(counters) == 0.0
        assert estimate_retransmissions(counters) == 0

    def test_goodput_equals_throughput(self, counters_factory):
        counters = counters_factory(rx_bytes=123_456, time_last_rx=3.3)
        assert calculate_goodput_mbps(counters) == calculate_throughput_mbps(counters)


class TestDegenerateFlows:
    def test_zero_duration(self, counters_factory):
        counters = counters_factory(time_first_tx=5.0, time_last_rx=5.0)
        assert calculate_throughput_mbps(counters) == 0.0
        assert calculate_goodput_mbps(counters) == 0.0

    def test_clock_skew(self, counters_factory):
        counters = counters_factory(time_first_tx=5.0, time_last_rx=4.0)
        assert calculate_throughput_mbps(counters) == 0.0

    def test_nothing_sent(self, counters_factory):
        counters = counters_factory(
            tx_packets=0, rx_packets=0, rx_bytes=0, delay_sum=0.0, jitter_sum=0.0
        )
        metrics = calculate_flow_metrics(FlowKey("a", "b"), counters, 60.0)

        assert metrics.packet_loss_ratio == 0.0
        assert metrics.packet_delivery_ratio == 0.0
        assert metrics.average_delay_s == 0.0
        assert metrics.average_jitter_s == 0.0
        for value in (
            metrics.throughput_mbps,
            metrics.average_delay_s,
            metrics.average_jitter_s,
            metrics.bandwidth_utilization,
        ):
            assert not math.isnan(value)

    def test_single_packet_has_no_jitter(self, counters_factory):
        counters = counters_factory(rx_packets=1, jitter_sum=0.5)
        assert calculate_average_jitter(counters) == 0.0
        assert calculate_average_delay(counters) == pytest.approx(0.95)

    def test_zero_capacity(self):
        assert calculate_bandwidth_utilization(10.0, 0.0) == 0.0
        assert calculate_bandwidth_utilization(10.0, -1.0) == 0.0


class TestJainFairness:
    def test_equal_flows(self):
        assert jain_fairness_index([10.0, 10.0]) == pytest.approx(1.0)

    def test_one_starved_flow(self):
        assert jain_fairness_index([10.0, 0.0]) == pytest.approx(0.5)

    def test_single_active_flow_scores_one_over_n(self):
        assert jain_fairness_index([10.0, 0.0, 0.0, 0.0]) == pytest.approx(0.25)
        assert jain_fairness_index([3.0] + [0.0] * 9) == pytest.approx(0.1)

    def test_empty(self):
        assert jain_fairness_index([]) == 0.0

    def test_all_zero(self):
        assert jain_fairness_index([0.0, 0.0, 0.0]) == 0.0

    def test_bounds(self):
        index = jain_fairness_index([1.0, 2.0, 3.0, 10.0])
        assert 1.0 / 4 <= index <= 1.0

    def test_accepts_generators(self):
        assert jain_fairness_index(x for x in (5.0, 5.0, 5.0)) == pytest.approx(1.0)
