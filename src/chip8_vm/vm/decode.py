"""
CHIP-8 Instruction Decoder
==========================

Turns a raw 16-bit instruction word into an explicit `Instruction` value:
an `Opcode` tag plus every operand field, extracted once.

Instruction word layout (big-endian, most significant nibble first):

    15..12   11..8   7..4   3..0
    family     x       y      n
                      \\___nn___/
             \\_______nnn______/

The family nibble selects a group of operations. Families 0, 5, 8, 9, E
and F need a secondary nibble or byte to pick the actual operation. Words
that fall through every case raise InvalidOpcodeError, so the dispatcher
only ever sees one of the 35 members of `Opcode`.

Copyright (c) 2026 chip8-vm Contributors
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from chip8_vm.errors import InvalidOpcodeError


class Opcode(Enum):
    """
    The 35 CHIP-8 operations.

    Each value is the mnemonic template used by `Instruction.__str__`.
    Templates are formatted with the instruction's x, y, n, nn and nnn
    fields.
    """
    SYS = "SYS  ${nnn:03X}"                    # 0nnn
    CLS = "CLS"                                # 00E0
    RET = "RET"                                # 00EE
    JP = "JP   ${nnn:03X}"                     # 1nnn
    CALL = "CALL ${nnn:03X}"                   # 2nnn
    SE_BYTE = "SE   V{x:X}, #${nn:02X}"         # 3xnn
    SNE_BYTE = "SNE  V{x:X}, #${nn:02X}"        # 4xnn
    SE_REG = "SE   V{x:X}, V{y:X}"              # 5xy0
    LD_BYTE = "LD   V{x:X}, #${nn:02X}"         # 6xnn
    ADD_BYTE = "ADD  V{x:X}, #${nn:02X}"        # 7xnn
    LD_REG = "LD   V{x:X}, V{y:X}"              # 8xy0
    OR = "OR   V{x:X}, V{y:X}"                  # 8xy1
    AND = "AND  V{x:X}, V{y:X}"                 # 8xy2
    XOR = "XOR  V{x:X}, V{y:X}"                 # 8xy3
    ADD_REG = "ADD  V{x:X}, V{y:X}"             # 8xy4
    SUB = "SUB  V{x:X}, V{y:X}"                 # 8xy5
    SHR = "SHR  V{x:X}"                         # 8xy6
    SUBN = "SUBN V{x:X}, V{y:X}"                # 8xy7
    SHL = "SHL  V{x:X}"                         # 8xyE
    SNE_REG = "SNE  V{x:X}, V{y:X}"             # 9xy0
    LD_I = "LD   I, ${nnn:03X}"                 # Annn
    JP_V0 = "JP   V0, ${nnn:03X}"               # Bnnn
    RND = "RND  V{x:X}, #${nn:02X}"             # Cxnn
    DRW = "DRW  V{x:X}, V{y:X}, {n}"            # Dxyn
    SKP = "SKP  V{x:X}"                         # Ex9E
    SKNP = "SKNP V{x:X}"                        # ExA1
    LD_VX_DT = "LD   V{x:X}, DT"                # Fx07
    LD_VX_K = "LD   V{x:X}, K"                  # Fx0A
    LD_DT_VX = "LD   DT, V{x:X}"                # Fx15
    LD_ST_VX = "LD   ST, V{x:X}"                # Fx18
    ADD_I = "ADD  I, V{x:X}"                    # Fx1E
    LD_F = "LD   F, V{x:X}"                     # Fx29
    LD_B = "LD   B, V{x:X}"                     # Fx33
    LD_MEM_VX = "LD   [I], V{x:X}"              # Fx55
    LD_VX_MEM = "LD   V{x:X}, [I]"              # Fx65


# Secondary-byte tables for the families that need them.
_ALU_OPS = {
    0x0: Opcode.LD_REG,
    0x1: Opcode.OR,
    0x2: Opcode.AND,
    0x3: Opcode.XOR,
    0x4: Opcode.ADD_REG,
    0x5: Opcode.SUB,
    0x6: Opcode.SHR,
    0x7: Opcode.SUBN,
    0xE: Opcode.SHL,
}

_KEY_OPS = {
    0x9E: Opcode.SKP,
    0xA1: Opcode.SKNP,
}

_MISC_OPS = {
    0x07: Opcode.LD_VX_DT,
    0x0A: Opcode.LD_VX_K,
    0x15: Opcode.LD_DT_VX,
    0x18: Opcode.LD_ST_VX,
    0x1E: Opcode.ADD_I,
    0x29: Opcode.LD_F,
    0x33: Opcode.LD_B,
    0x55: Opcode.LD_MEM_VX,
    0x65: Opcode.LD_VX_MEM,
}


@dataclass(frozen=True)
class Instruction:
    """
    A decoded instruction word.

    Attributes:
        word: The raw 16-bit instruction word
        opcode: Which of the 35 operations this is
        x: Bits 8-11, first register index
        y: Bits 4-7, second register index
        n: Bits 0-3, 4-bit immediate (sprite height)
        nn: Bits 0-7, 8-bit immediate
        nnn: Bits 0-11, 12-bit address
    """
    word: int
    opcode: Opcode
    x: int
    y: int
    n: int
    nn: int
    nnn: int

    @property
    def mnemonic(self) -> str:
        """Assembly-style rendering, e.g. 'DRW  V3, V5, 5'."""
        return self.opcode.value.format(
            x=self.x, y=self.y, n=self.n, nn=self.nn, nnn=self.nnn
        )

    def __str__(self) -> str:
        return self.mnemonic


def decode(word: int) -> Instruction:
    """
    Decode a 16-bit instruction word.

    Args:
        word: Instruction word (0x0000-0xFFFF)

    Returns:
        Instruction with the opcode tag and all operand fields

    Raises:
        InvalidOpcodeError: If the word matches no opcode
    """
    word &= 0xFFFF
    family = (word & 0xF000) >> 12
    x = (word & 0x0F00) >> 8
    y = (word & 0x00F0) >> 4
    n = word & 0x000F
    nn = word & 0x00FF
    nnn = word & 0x0FFF

    opcode: Optional[Opcode]
    match family:
        case 0x0:
            if word == 0x00E0:
                opcode = Opcode.CLS
            elif word == 0x00EE:
                opcode = Opcode.RET
            else:
                opcode = Opcode.SYS
        case 0x1:
            opcode = Opcode.JP
        case 0x2:
            opcode = Opcode.CALL
        case 0x3:
            opcode = Opcode.SE_BYTE
        case 0x4:
            opcode = Opcode.SNE_BYTE
        case 0x5:
            opcode = Opcode.SE_REG if n == 0 else None
        case 0x6:
            opcode = Opcode.LD_BYTE
        case 0x7:
            opcode = Opcode.ADD_BYTE
        case 0x8:
            opcode = _ALU_OPS.get(n)
        case 0x9:
            opcode = Opcode.SNE_REG if n == 0 else None
        case 0xA:
            opcode = Opcode.LD_I
        case 0xB:
            opcode = Opcode.JP_V0
        case 0xC:
            opcode = Opcode.RND
        case 0xD:
            opcode = Opcode.DRW
        case 0xE:
            opcode = _KEY_OPS.get(nn)
        case _:
            opcode = _MISC_OPS.get(nn)

    if opcode is None:
        raise InvalidOpcodeError(word)

    return Instruction(word=word, opcode=opcode, x=x, y=y, n=n, nn=nn, nnn=nnn)


# =============================================================================
# Disassembly
# =============================================================================

@dataclass(frozen=True)
class DisassemblyLine:
    """
    One instruction word of a disassembly listing.

    `instruction` is None when the word is not a valid opcode (usually
    sprite or other data embedded in the program).
    """
    address: int
    word: int
    instruction: Optional[Instruction]

    def __str__(self) -> str:
        if self.instruction is None:
            text = f"DW   ${self.word:04X}"
        else:
            text = self.instruction.mnemonic
        return f"${self.address:04X}: {self.word:04X}  {text}"


def iter_disassembly(data: bytes, start_address: int = 0x200) -> Iterator[DisassemblyLine]:
    """
    Walk a program image two bytes at a time.

    A trailing odd byte is ignored. Invalid words are yielded with
    instruction=None instead of raising, so data tables embedded in a
    program do not abort the listing.
    """
    for offset in range(0, len(data) - 1, 2):
        word = (data[offset] << 8) | data[offset + 1]
        try:
            instruction = decode(word)
        except InvalidOpcodeError:
            instruction = None
        yield DisassemblyLine(start_address + offset, word, instruction)


def disassemble(
    data: bytes,
    start_address: int = 0x200,
    count: Optional[int] = None,
) -> List[DisassemblyLine]:
    """
    Disassemble a program image.

    Args:
        data: Raw program bytes
        start_address: Address of the first byte (default $200)
        count: Maximum number of words to list (default: all)

    Returns:
        List of DisassemblyLine, one per instruction word
    """
    lines = []
    for line in iter_disassembly(data, start_address):
        if count is not None and len(lines) >= count:
            break
        lines.append(line)
    return lines
