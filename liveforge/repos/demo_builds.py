"""Showcase builds inserted into the store at startup (``SEED_DEMO_BUILDS``).

Timestamps are relative to process start so the dashboard always shows
them as recent history.
"""

from datetime import datetime, timedelta, timezone

from liveforge.schemas import BuildRecord, BuildStatus, ChainProof, GeneratedFile

_LOGGER_SOURCE = """use anchor_lang::prelude::*;

declare_id!("GUyhK2AvkPcVwt4Q1ABmMsQTGvZphiAMaAnDWLSyZoSK");

#[program]
pub mod liveforge_logger {
    use super::*;

    pub fn initialize_build(ctx: Context<InitializeBuild>, build_id: String, project_name: String) -> Result<()> {
        let build = &mut ctx.accounts.build;
        build.authority = ctx.accounts.authority.key();
        build.build_id = build_id;
        build.project_name = project_name;
        build.step_count = 0;
        build.started_at = Clock::get()?.unix_timestamp;
        build.status = BuildStatus::InProgress;
        Ok(())
    }

    pub fn log_action(ctx: Context<LogAction>, action_type: ActionType, description: String, content_hash: [u8; 32]) -> Result<()> {
        let build = &mut ctx.accounts.build;
        build.step_count += 1;
        Ok(())
    }
}
"""

_NFT_SOURCE = """use anchor_lang::prelude::*;

// NFT Marketplace with Royalties
declare_id!("NFTMarket1111111111111111111111111111111111");

#[program]
pub mod nft_marketplace {
    use super::*;

    pub fn list_nft(ctx: Context<ListNFT>, price: u64, royalty_bps: u16) -> Result<()> {
        Ok(())
    }

    pub fn buy_nft(ctx: Context<BuyNFT>) -> Result<()> {
        Ok(())
    }
}
"""

_DAO_SOURCE = """use anchor_lang::prelude::*;

// DAO Treasury Manager
declare_id!("DAOTreasury1111111111111111111111111111111");

#[program]
pub mod dao_treasury {
    use super::*;

    pub fn create_proposal(ctx: Context<CreateProposal>, proposal: String) -> Result<()> {
        Ok(())
    }

    pub fn vote(ctx: Context<Vote>, support: bool) -> Result<()> {
        Ok(())
    }
}
"""


def _proofs(*entries: tuple[int, str, str]) -> list[ChainProof]:
    return [ChainProof(step=s, tx_hash=tx, fingerprint=h) for s, tx, h in entries]


def demo_builds(now: datetime | None = None) -> list[BuildRecord]:
    now = now or datetime.now(timezone.utc)
    logger_start = now - timedelta(hours=3)
    nft_start = now - timedelta(hours=1)
    dao_start = now - timedelta(hours=5)
    return [
        BuildRecord(
            id="build_liveforge_logger",
            prompt="Build an on-chain build action logger for LiveForge",
            status=BuildStatus.SUCCESS,
            started_at=logger_start,
            completed_at=logger_start + timedelta(minutes=6, seconds=12),
            duration="6m 12s",
            program_id="GUyhK2AvkPcVwt4Q1ABmMsQTGvZphiAMaAnDWLSyZoSK",
            files=[GeneratedFile(name="lib.rs", content=_LOGGER_SOURCE)],
            chain_proofs=_proofs(
                (0, "5m2mRTut55C944uMEQvwhgT6bFvSiNQXQ9CxeJnQZ3yWuvBV5uPpz34WmpCYAQBYJjBSwUAU9SqquxYDd8L9Gcxr", "program_deploy"),
                (1, "5wJWEq2nyj9TbEVsK2MkCBb6PcjSHs2VHfKyQENK4tyHH1LenH3rmnggY7DYYCiusWEAZQY5ZX2N2BYb1triRGra", "a1b2c3d4e5..."),
                (2, "3QH35R3kZXpN2q2XDMjjzXJ1E3yXWi5uzuLhNXGFc9FijfFSQZ2uqv1wMgVEFNxLVwYgafKWHuNBFfn5WXoBfARA", "f6a7b8c9d0..."),
                (3, "44MwKrY8mn13ifuRv2SZV6WWqhoXUuJ6Q7LUbyaEnkL2QYGD3dVepMHtVFxAhsQEgc9Q95Wnqp2H5Gcu6XjCBiSV", "e1f2a3b4c5..."),
            ),
        ),
        BuildRecord(
            id="build_nft_1770286435947",
            prompt="Build a Solana NFT Marketplace with Royalties",
            status=BuildStatus.SUCCESS,
            started_at=nft_start,
            completed_at=nft_start + timedelta(minutes=4, seconds=28),
            duration="4m 28s",
            files=[GeneratedFile(name="lib.rs", content=_NFT_SOURCE)],
            chain_proofs=_proofs(
                (0, "5eBiCnvBqvSPiAzhBVPSTsSCAEnzRWiRJoBmhMjovZ2oteBTNiuUEjNh6XkciNgvtG7fdEt2P3L7GPQquGXDH5pS", "init_build"),
                (1, "2pCzcaDqv6C7Rmb6BFbbnnmeg693AmcBwxooj1KzBUXSB5kRLZ4AitLqbqdbvR68pqxohngRKevFv3JUShYirLFR", "d6e7f8a9b0..."),
            ),
        ),
        BuildRecord(
            id="build_dao_example",
            prompt="Build a DAO treasury manager with voting mechanism",
            status=BuildStatus.SUCCESS,
            started_at=dao_start,
            completed_at=dao_start + timedelta(minutes=5, seconds=18),
            duration="5m 18s",
            program_id="DAOTreasury1111111111111111111111111111111",
            files=[GeneratedFile(name="lib.rs", content=_DAO_SOURCE)],
            chain_proofs=_proofs(
                (1, "7Hj9mNpQrS4tUvWxY1zA2bC3dE4fG5hH6iJ7kL8m9n0", "c1d2e3f4a5..."),
                (2, "3KlMnO1pP2qQ3rR4sS5tT6uU7vV8wW9xX0yY1zZ2aA3", "b6c7d8e9f0..."),
            ),
        ),
    ]
