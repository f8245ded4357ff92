"""Deterministic stand-ins used when generation fails or yields no usable block.

Each template is a small but complete Anchor program, TypeScript SDK or
Mocha test file parameterised only by the prompt (and the declared program
id), so a build always has non-empty artifacts to show and fingerprint.
"""

import re
import secrets

from liveforge.clients.ledger_client import BASE58_ALPHABET
from liveforge.schemas import BuildSpec

PROGRAM_ID_LENGTH = 44


def generate_program_id() -> str:
    """Random 44-char base58 token shaped like a deployed program address."""
    return "".join(secrets.choice(BASE58_ALPHABET) for _ in range(PROGRAM_ID_LENGTH))


def module_name(prompt: str) -> str:
    """Rust module identifier derived from the prompt (max 30 chars)."""
    name = re.sub(r"[^a-z0-9]", "_", prompt.lower())[:30].strip("_")
    if not name:
        return "agent_program"
    if name[0].isdigit():
        name = f"p_{name}"[:30]
    return name


def fallback_build_spec(prompt: str) -> BuildSpec:
    return BuildSpec(
        name=module_name(prompt),
        description=prompt.strip(),
        instructions=["initialize", "execute"],
        state_accounts=["ProgramState"],
    )


def fallback_program(prompt: str, program_id: str | None = None) -> str:
    program_id = program_id or generate_program_id()
    summary = " ".join(prompt.split())
    return f"""use anchor_lang::prelude::*;

declare_id!("{program_id}");

/// {summary}
#[program]
pub mod {module_name(prompt)} {{
    use super::*;

    /// Initialize the program state
    pub fn initialize(ctx: Context<Initialize>) -> Result<()> {{
        let state = &mut ctx.accounts.state;
        state.authority = ctx.accounts.authority.key();
        state.initialized = true;

        msg!("Program initialized by: {{}}", ctx.accounts.authority.key());
        Ok(())
    }}

    /// Core program logic
    pub fn execute(ctx: Context<Execute>, data: String) -> Result<()> {{
        let state = &ctx.accounts.state;
        require!(state.initialized, ErrorCode::NotInitialized);
        require!(
            state.authority == ctx.accounts.authority.key(),
            ErrorCode::Unauthorized
        );

        msg!("Executing with data: {{}}", data);
        Ok(())
    }}
}}

#[derive(Accounts)]
pub struct Initialize<'info> {{
    #[account(
        init,
        payer = authority,
        space = 8 + 32 + 1,
        seeds = [b"state"],
        bump
    )]
    pub state: Account<'info, ProgramState>,

    #[account(mut)]
    pub authority: Signer<'info>,

    pub system_program: Program<'info, System>,
}}

#[derive(Accounts)]
pub struct Execute<'info> {{
    #[account(
        seeds = [b"state"],
        bump
    )]
    pub state: Account<'info, ProgramState>,

    pub authority: Signer<'info>,
}}

#[account]
pub struct ProgramState {{
    pub authority: Pubkey,
    pub initialized: bool,
}}

#[error_code]
pub enum ErrorCode {{
    #[msg("Program not initialized")]
    NotInitialized,
    #[msg("Unauthorized access")]
    Unauthorized,
}}
"""


def fallback_sdk(prompt: str) -> str:
    summary = " ".join(prompt.split())
    return f"""import * as anchor from '@coral-xyz/anchor';
import {{ Program, AnchorProvider, Idl }} from '@coral-xyz/anchor';
import {{ Connection, PublicKey }} from '@solana/web3.js';

/**
 * {summary}
 * TypeScript SDK
 */
export class AgentProgramClient {{
  private program: Program;
  private provider: AnchorProvider;

  constructor(connection: Connection, wallet: anchor.Wallet, idl: Idl) {{
    this.provider = new AnchorProvider(connection, wallet, {{ commitment: 'confirmed' }});
    this.program = new Program(idl, this.provider);
  }}

  statePda(): PublicKey {{
    const [pda] = PublicKey.findProgramAddressSync(
      [Buffer.from('state')],
      this.program.programId
    );
    return pda;
  }}

  async initialize(): Promise<string> {{
    return this.program.methods
      .initialize()
      .accounts({{
        state: this.statePda(),
        authority: this.provider.wallet.publicKey,
        systemProgram: anchor.web3.SystemProgram.programId,
      }})
      .rpc();
  }}

  async execute(data: string): Promise<string> {{
    return this.program.methods
      .execute(data)
      .accounts({{
        state: this.statePda(),
        authority: this.provider.wallet.publicKey,
      }})
      .rpc();
  }}

  async getState(): Promise<unknown> {{
    return this.program.account.programState.fetch(this.statePda());
  }}
}}
"""


def fallback_tests(prompt: str) -> str:
    title = " ".join(prompt.split())[:30].replace("'", "\\'")
    return f"""import * as anchor from '@coral-xyz/anchor';
import {{ Program }} from '@coral-xyz/anchor';
import {{ expect }} from 'chai';

describe('{title}', () => {{
  const provider = anchor.AnchorProvider.env();
  anchor.setProvider(provider);

  const program = anchor.workspace.AgentProgram as Program;
  const [statePda] = anchor.web3.PublicKey.findProgramAddressSync(
    [Buffer.from('state')],
    program.programId
  );

  it('initializes the program', async () => {{
    await program.methods
      .initialize()
      .accounts({{
        state: statePda,
        authority: provider.wallet.publicKey,
        systemProgram: anchor.web3.SystemProgram.programId,
      }})
      .rpc();

    const state = await program.account.programState.fetch(statePda);
    expect(state.initialized).to.be.true;
    expect(state.authority.toString()).to.equal(provider.wallet.publicKey.toString());
  }});

  it('executes program logic', async () => {{
    await program.methods
      .execute('test data')
      .accounts({{ state: statePda, authority: provider.wallet.publicKey }})
      .rpc();
  }});
}});
"""
