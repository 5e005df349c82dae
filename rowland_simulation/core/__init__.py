"""
罗兰圆单色器模拟核心模块

该子包包含模拟的核心功能模块：
- constants: 物理常数、数值设置和调试标志
- data_classes: 数据结构定义（CrystalProperties, RowlandGeometry, NeutronState, NeutronRecord）
- geometry: 平面几何、坐标变换和圆柱求交
- array_builder: 在罗兰圆上布置晶片阵列
- lookup: 反射率/透射率查找表
- crystal: 镶嵌晶体散射引擎
- transport: 晶片判定与输运
- sampling: 抽样方法
- simulation: 模拟主逻辑
- io_utils: 输入输出工具
"""

# 常数
from .constants import (
    V2K,
    K2V,
    MIN2RAD,
    DEG2RAD,
    DEBUG,
    CLAMP_STATS,
    reset_clamp_stats,
    print_clamp_stats,
)

# 数据类
from .data_classes import (
    FocusingMode,
    Outcome,
    CrystalProperties,
    RowlandGeometry,
    NeutronState,
    NeutronRecord,
    LookupTable,
    RowlandMonochromator,
)

# 几何处理
from .geometry import (
    fit_circle,
    aperture_limit_point,
    exact_focus_angle,
    rotate_about_y,
    transform_between_frames,
    build_orthonormal_frame,
    intersect_cylinder,
)

# 阵列构建
from .array_builder import (
    locate_reference_points,
    build_rowland_geometry,
    build_monochromator,
    print_geometry_summary,
)

# 查找表
from .lookup import load_lookup_table

# 晶体散射
from .crystal import crystal_interaction

# 输运
from .transport import (
    find_slab_index,
    locate_slab,
    interact_with_array,
)

# 抽样
from .sampling import (
    sample_wavelength,
    sample_incident_neutron,
)

# 模拟
from .simulation import (
    simulate_neutron_history,
    run_simulation,
)

# IO工具
from .io_utils import (
    export_neutron_records_to_csv,
    records_to_dataframe,
    load_records_csv,
)

__all__ = [
    # 常数
    'V2K',
    'K2V',
    'MIN2RAD',
    'DEG2RAD',
    'DEBUG',
    'CLAMP_STATS',
    'reset_clamp_stats',
    'print_clamp_stats',
    # 数据类
    'FocusingMode',
    'Outcome',
    'CrystalProperties',
    'RowlandGeometry',
    'NeutronState',
    'NeutronRecord',
    'LookupTable',
    'RowlandMonochromator',
    # 几何
    'fit_circle',
    'aperture_limit_point',
    'exact_focus_angle',
    'rotate_about_y',
    'transform_between_frames',
    'build_orthonormal_frame',
    'intersect_cylinder',
    # 阵列
    'locate_reference_points',
    'build_rowland_geometry',
    'build_monochromator',
    'print_geometry_summary',
    # 查找表
    'load_lookup_table',
    # 晶体
    'crystal_interaction',
    # 输运
    'find_slab_index',
    'locate_slab',
    'interact_with_array',
    # 抽样
    'sample_wavelength',
    'sample_incident_neutron',
    # 模拟
    'simulate_neutron_history',
    'run_simulation',
    # IO
    'export_neutron_records_to_csv',
    'records_to_dataframe',
    'load_records_csv',
]
