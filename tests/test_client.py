"""End-to-end client tests: GqrxClient -> dispatcher -> TCP -> fake gqrx."""

import asyncio

import pytest

from radios.gqrx import (
    CommandError,
    CommandTimeoutError,
    ConnectionState,
    GqrxClient,
    GqrxConnectionError,
    ModeInfo,
    ProtocolError,
)
from radios.gqrx.client import mhz_to_hz

from conftest import wait_for_condition


@pytest.fixture
def make_client(gqrx_server):
    def _make(**kwargs):
        return GqrxClient(gqrx_server.host, gqrx_server.port, **kwargs)
    return _make


# ---------------------------------------------------------------------------
# Basic commands
# ---------------------------------------------------------------------------

class TestCommands:

    @pytest.mark.asyncio
    async def test_version(self, make_client):
        async with make_client() as gqrx:
            assert await gqrx.get_version() == "2.15.9"

    @pytest.mark.asyncio
    async def test_frequency_round_trip(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            assert await gqrx.set_frequency(851.872) is True
            assert gqrx_server.received[-1] == "F 851872000"
            assert await gqrx.get_frequency() == pytest.approx(851.872)

    @pytest.mark.asyncio
    async def test_set_mode_uses_preset_passband(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            assert await gqrx.set_mode("wfm") is True
            assert gqrx_server.received[-1] == "M WFM 160000"
            assert await gqrx.get_mode_and_passband() == ModeInfo("WFM", 160000)

    @pytest.mark.asyncio
    async def test_set_mode_rejects_unknown_mode(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            with pytest.raises(ValueError):
                await gqrx.set_mode("DSTAR")
        await wait_for_condition(lambda: gqrx_server.received == ["q"])

    @pytest.mark.asyncio
    async def test_mode_and_passband_chunked(self, make_client, gqrx_server):
        gqrx_server.chunked = True
        async with make_client() as gqrx:
            assert await gqrx.set_mode_and_passband("USB", 2800) is True
            assert await gqrx.get_mode_and_passband() == ModeInfo("USB", 2800)
            assert await gqrx.get_frequency() == pytest.approx(145.5)

    @pytest.mark.asyncio
    async def test_available_modes(self, make_client):
        async with make_client() as gqrx:
            modes = await gqrx.get_available_modes()
        assert "FM" in modes and "WFM_ST" in modes

    @pytest.mark.asyncio
    async def test_levels(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            assert await gqrx.get_signal_strength() == pytest.approx(-72.4)
            assert await gqrx.set_squelch(-60.5) is True
            assert gqrx_server.received[-1] == "L SQL -60.5"
            assert await gqrx.get_squelch() == pytest.approx(-60.5)

    @pytest.mark.asyncio
    async def test_recording(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            assert await gqrx.is_recording() is False
            assert await gqrx.start_recording() is True
            assert gqrx_server.received[-1] == "U RECORD 1"
            assert await gqrx.get_recording_status() == "1"
            assert await gqrx.is_recording() is True
            assert await gqrx.stop_recording() is True
            assert await gqrx.is_recording() is False

    @pytest.mark.asyncio
    async def test_aos_los(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            assert await gqrx.trigger_aos() is True
            assert await gqrx.trigger_los() is True
        await wait_for_condition(lambda: gqrx_server.received == ["AOS", "LOS", "q"])

    @pytest.mark.asyncio
    async def test_lnb(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            assert await gqrx.set_lnb(9750.0) is True
            assert gqrx_server.received[-1] == "LNB_LO 9750000000"
            assert await gqrx.get_lnb() == pytest.approx(9750.0)

    def test_mhz_to_hz_rounds(self):
        assert mhz_to_hz(145.288) == 145288000
        assert mhz_to_hz(0.0000004) == 0


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:

    @pytest.mark.asyncio
    async def test_failed_set_raises_command_error(self, make_client):
        async with make_client() as gqrx:
            with pytest.raises(CommandError) as exc_info:
                await gqrx.set_squelch(-200)
            assert exc_info.value.code == 1
            # the connection is still usable
            assert await gqrx.get_version() == "2.15.9"

    @pytest.mark.asyncio
    async def test_failed_query_raises_command_error(self, make_client, gqrx_server):
        gqrx_server.unsupported.add("LNB_LO")
        async with make_client() as gqrx:
            with pytest.raises(CommandError):
                await gqrx.get_lnb()

    @pytest.mark.asyncio
    async def test_unparseable_value_is_protocol_error(self, make_client, gqrx_server):
        gqrx_server.strength = "n/a"
        async with make_client() as gqrx:
            with pytest.raises(ProtocolError):
                await gqrx.get_signal_strength()

    @pytest.mark.asyncio
    async def test_timeout(self, make_client, gqrx_server):
        gqrx_server.silent.add("f")
        async with make_client(command_timeout=0.05) as gqrx:
            with pytest.raises(CommandTimeoutError):
                await gqrx.get_frequency()

    @pytest.mark.asyncio
    async def test_connection_refused(self, unused_port):
        gqrx = GqrxClient("127.0.0.1", unused_port, connect_timeout=1.0)
        with pytest.raises(GqrxConnectionError):
            await gqrx.connect()
        assert not gqrx.connected

    @pytest.mark.asyncio
    async def test_not_connected(self, make_client, gqrx_server):
        gqrx = make_client()
        with pytest.raises(GqrxConnectionError):
            await gqrx.get_version()
        assert gqrx_server.received == []

    @pytest.mark.asyncio
    async def test_remote_drop_rejects_all_pending(self, make_client, gqrx_server):
        reasons = []
        gqrx_server.drop_on.add("l SQL")
        gqrx = make_client(on_disconnected=reasons.append)
        await gqrx.connect()
        results = await asyncio.gather(
            gqrx.get_squelch(),
            gqrx.get_signal_strength(),
            gqrx.get_version(),
            return_exceptions=True,
        )
        assert all(isinstance(r, GqrxConnectionError) for r in results)
        assert gqrx.state is ConnectionState.DISCONNECTED
        assert reasons and "closed by peer" in reasons[0]
        await gqrx.quit()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class TestSession:

    @pytest.mark.asyncio
    async def test_concurrent_calls_get_their_own_replies(self, make_client, gqrx_server):
        async with make_client() as gqrx:
            version, freq, mode, strength = await asyncio.gather(
                gqrx.get_version(),
                gqrx.get_frequency(),
                gqrx.get_mode_and_passband(),
                gqrx.get_signal_strength(),
            )
        assert version == "2.15.9"
        assert freq == pytest.approx(145.5)
        assert mode == ModeInfo("FM", 10000)
        assert strength == pytest.approx(-72.4)
        await wait_for_condition(lambda: gqrx_server.received == ["_", "f", "m", "l STRENGTH", "q"])

    @pytest.mark.asyncio
    async def test_quit_sends_q_and_closes(self, make_client, gqrx_server):
        gqrx = make_client()
        await gqrx.connect()
        await gqrx.quit()
        assert gqrx.state is ConnectionState.CLOSED
        await wait_for_condition(lambda: gqrx_server.received == ["q"])
        with pytest.raises(GqrxConnectionError):
            await gqrx.get_version()
