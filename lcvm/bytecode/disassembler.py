"""Decodes instruction buffers back into readable listings, annotating jump targets and lambda entry points."""

from collections import namedtuple

from lcvm.bytecode.buffer import Opcode
from lcvm.lang.error import GenericException

Instruction = namedtuple("Instruction", ["address", "opcode", "operand"])

RELATIVE = (Opcode.JMP, Opcode.GET_REL_ADDR)


def disassemble(buffer):
    """Splits buffer into Instructions, reading as many operand words after each opcode as it takes."""
    instructions = []
    address = 0
    while address < len(buffer):
        try:
            opcode = Opcode(buffer[address])
        except ValueError:
            raise GenericException("invalid opcode {} at address {}", (str(buffer[address]), str(address))) from None

        if address + opcode.arg_count >= len(buffer):
            raise GenericException("{} at address {} is missing its operand", (opcode.name, str(address)))

        operand = buffer[address + 1] if opcode.arg_count else None
        instructions.append(Instruction(address, opcode, operand))
        address += 1 + opcode.arg_count

    return instructions


def annotate(instruction, buffer):
    """Returns a comment describing what instruction does, or an empty string."""
    if instruction.opcode in RELATIVE:
        target = instruction.address + instruction.operand
        if instruction.opcode is Opcode.GET_REL_ADDR and target in buffer.lambdas:
            return f"; -> {target:04} ({buffer.lambdas[target]})"
        return f"; -> {target:04}"

    if instruction.opcode is Opcode.ENV_LOOKUP:
        return f"; frame {instruction.operand}"

    return ""


def format_listing(buffer):
    """Renders buffer as one line per instruction: address, opcode, operand and annotation."""
    lines = []
    for instruction in disassemble(buffer):
        if instruction.address in buffer.lambdas:
            lines.append(f"      λ{buffer.lambdas[instruction.address].arg}:")

        operand = "" if instruction.operand is None else str(instruction.operand)
        line = f"{instruction.address:04}  {instruction.opcode.name:<16} {operand:>4}  {annotate(instruction, buffer)}"
        lines.append(line.rstrip())

    return "\n".join(lines)
