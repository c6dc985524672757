from dicetel_core.services.dice import Dice as Dice
