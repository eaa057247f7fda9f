"""Decorator-based exclusion of framework-managed symbols."""
from typing import Iterable, List

from .extractor import Symbol


# Decorators whose targets are read or written by a framework at runtime,
# so a missing textual reference says nothing about usage.
DEFAULT_EXCLUDE_DECORATORS = [
    # TypeORM
    'Column', 'PrimaryColumn', 'PrimaryGeneratedColumn', 'CreateDateColumn',
    'UpdateDateColumn', 'DeleteDateColumn', 'VersionColumn', 'OneToOne',
    'OneToMany', 'ManyToOne', 'ManyToMany', 'JoinColumn', 'JoinTable',
    'RelationId', 'Index', 'Unique', 'Check', 'Exclusion', 'Generated',
    'TreeParent', 'TreeChildren', 'Tree', 'ViewColumn', 'ViewEntity',

    # class-validator
    'IsString', 'IsNumber', 'IsInt', 'IsBoolean', 'IsArray', 'IsEnum',
    'IsOptional', 'IsNotEmpty', 'IsEmail', 'IsUrl', 'IsUUID', 'IsDate',
    'IsDateString', 'IsObject', 'IsPositive', 'IsNegative', 'Min', 'Max',
    'MinLength', 'MaxLength', 'Length', 'Matches', 'Contains', 'NotContains',
    'IsIn', 'IsNotIn', 'ArrayMinSize', 'ArrayMaxSize', 'ArrayNotEmpty',
    'ArrayUnique', 'ValidateNested', 'ValidateIf', 'IsDefined', 'Allow',

    # class-transformer
    'Type', 'Transform', 'Expose', 'Exclude', 'TransformPlainToClass',
    'TransformClassToPlain',

    # Swagger / OpenAPI
    'ApiProperty', 'ApiPropertyOptional', 'ApiHideProperty', 'ApiResponseProperty',

    # NestJS dependency injection
    'Inject', 'Injectable', 'Optional',

    # Sequelize
    'Table', 'Model', 'HasMany', 'HasOne', 'BelongsTo', 'BelongsToMany',
    'ForeignKey', 'AutoIncrement', 'AllowNull', 'Default', 'PrimaryKey', 'DataType',

    # MobX
    'observable', 'computed', 'action', 'makeObservable', 'makeAutoObservable',

    # Angular
    'Input', 'Output', 'ViewChild', 'ViewChildren', 'ContentChild',
    'ContentChildren', 'HostBinding', 'HostListener',
]


class ExclusionFilter:
    """Decide which symbols are skipped because a framework manages them."""

    def __init__(self, markers: Iterable[str] = DEFAULT_EXCLUDE_DECORATORS):
        self._markers = set(markers)

    def set_exclusion_markers(self, markers: Iterable[str]):
        """Replace the active marker set."""
        self._markers = set(markers)

    def add_exclusion_markers(self, markers: Iterable[str]):
        """Extend the active marker set."""
        self._markers.update(markers)

    def should_exclude(self, symbol: Symbol) -> bool:
        """True if any of the symbol's markers is in the active set."""
        if not symbol.has_marker:
            return False
        return any(marker in self._markers for marker in symbol.markers)

    def filter_analyzable(self, symbols: Iterable[Symbol]) -> List[Symbol]:
        """Symbols that still need usage analysis, in input order."""
        return [symbol for symbol in symbols if not self.should_exclude(symbol)]

    def is_excluded_marker(self, name: str) -> bool:
        return name in self._markers

    @property
    def exclusion_markers(self) -> List[str]:
        return sorted(self._markers)
